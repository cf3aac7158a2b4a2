#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker with the embedded beat scheduler, which runs the
# email queue, failed-email reconciliation and daily digest jobs.
#
# Usage:
#   python scripts/start_worker.py
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker --beat --loglevel=info -Q notifications,default
#
# Prerequisites:
#   - Redis must be running (REDIS_URL, default redis://localhost:6379/0)
#   - Supabase environment variables must be set (.env file)
# =============================================================================

from workers.celery_app import celery_app


def main():
    """Start the Celery worker and beat scheduler."""
    print("=" * 60)
    print("CodeCheck Notification Worker")
    print("=" * 60)
    print()
    print("Starting worker with beat scheduler...")
    print("Press Ctrl+C to stop")
    print()

    # A single beat instance must run; keep it embedded in this worker
    celery_app.worker_main([
        "worker",
        "--beat",
        "--loglevel=info",
        "--concurrency=2",
        "--queues=notifications,default",
    ])


if __name__ == "__main__":
    main()
