# =============================================================================
# lib/llm_clients.py - Model Provider Clients
# =============================================================================
# Builds the OpenAI SDK clients used by the analysis services:
# - Perplexity (OpenAI-compatible endpoint) for feasibility research
# - OpenAI for checklist extraction and plan checking
#
# Both are built once per process (see the lifespan handler in app/main.py)
# and closed on shutdown. A missing API key yields None, which the services
# report as "not configured".
# =============================================================================

from typing import Any

from openai import OpenAI

# Reasoning models can take well over a minute to answer
PERPLEXITY_TIMEOUT_SECONDS = 120.0


def build_perplexity_client(settings: Any) -> OpenAI | None:
    """OpenAI SDK client bound to the Perplexity endpoint, or None without a key."""
    if not settings.PERPLEXITY_API_KEY:
        return None
    return OpenAI(
        api_key=settings.PERPLEXITY_API_KEY,
        base_url=settings.PERPLEXITY_BASE_URL,
        max_retries=settings.FEASIBILITY_MAX_RETRIES,
        timeout=PERPLEXITY_TIMEOUT_SECONDS,
    )


def build_openai_client(settings: Any) -> OpenAI | None:
    """OpenAI client for the plan review agents, or None without a key."""
    if not settings.OPENAI_API_KEY:
        return None
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        max_retries=settings.OPENAI_MAX_RETRIES,
        timeout=settings.OPENAI_TIMEOUT_SECONDS,
    )


def close_client(client: OpenAI | None) -> None:
    """Close an SDK client built above; None is ignored."""
    if client is not None:
        client.close()
