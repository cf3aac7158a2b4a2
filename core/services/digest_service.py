# =============================================================================
# core/services/digest_service.py - Daily Task Digest
# =============================================================================
# The digest emails themselves are composed by database functions that write
# into email_notifications; this service triggers them and reports how many
# digest emails are waiting for the queue processor.
# =============================================================================

import logging

from app.exceptions import DigestGenerationError
from core.models.notification import DigestResult, EmailStatus
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import utc_now

logger = logging.getLogger(__name__)

DIGEST_EMAIL_TYPE = "daily_task_digest"

# (label, database function), run in this order
DIGEST_FUNCTIONS = (
    ("AR", "generate_ar_daily_digest"),
    ("PM", "generate_pm_daily_digest"),
)


class DailyDigestService:

    def __init__(self, supabase: SupabaseClient):
        self._supabase = supabase

    def generate(self) -> DigestResult:
        """
        Run the AR then PM digest functions and count today's queued digests.

        Raises:
            DigestGenerationError: If either database function fails
        """
        started_at = utc_now()
        logger.info(f"🌅 Starting daily task digest generation at {started_at.isoformat()}")

        for label, function in DIGEST_FUNCTIONS:
            try:
                self._supabase.rpc(function)
            except SupabaseClientError as e:
                logger.error(f"❌ Error generating {label} daily digest: {e.message}")
                raise DigestGenerationError(label, e.message) from e
            logger.info(f"✅ {label} daily digest generated successfully")

        start_of_day = started_at.replace(hour=0, minute=0, second=0, microsecond=0)
        try:
            queued = self._supabase.count_emails(DIGEST_EMAIL_TYPE, EmailStatus.PENDING.value, start_of_day)
        except SupabaseClientError as e:
            logger.warning(f"Could not count queued digest emails: {e.message}")
            queued = 0

        logger.info(f"📧 {queued} daily digest email(s) queued for delivery")
        return DigestResult(
            message="Daily digest generation completed",
            queued_count=queued,
            generated_at=utc_now(),
        )
