# =============================================================================
# core/services/teams_service.py - Microsoft Teams Notifications
# =============================================================================
# Posts task status changes to a Teams incoming webhook as a MessageCard.
# =============================================================================

import json
import logging
from typing import Any

import httpx

from app.exceptions import DeliveryFailedError, DeliveryNotConfiguredError
from core.models.notification import DeliveryResult, TeamsNotificationPayload
from lib.utils import capitalize_first

logger = logging.getLogger(__name__)

PROVIDER = "Microsoft Teams"

STATUS_EMOJI = {
    "completed": "✅",
    "started": "🚀",
    "not started": "⏳",
    "on hold": "⏸️",
}

APPROVAL_EMOJI = {
    "approved": "👍",
    "rejected": "👎",
    "pending": "⏳",
}

THEME_COLORS = {
    "completed": "00C853",
    "started": "2196F3",
}
DEFAULT_THEME_COLOR = "FF9800"


def status_emoji(status: str | None) -> str:
    return STATUS_EMOJI.get((status or "").lower(), "📋")


def approval_emoji(status: str | None) -> str:
    return APPROVAL_EMOJI.get((status or "").lower(), "")


def _labelled(emoji: str, value: str | None) -> str:
    return f"{emoji} {capitalize_first(value)}".strip()


def build_message_card(payload: TeamsNotificationPayload, task_url: str) -> dict[str, Any]:
    """
    Build the MessageCard JSON for a task status change.

    Optional facts (previous status, approval) and the comment section are
    only included when present in the payload.
    """
    facts = [
        {"name": "📌 Task", "value": payload.task_name},
        {"name": "👤 Updated By", "value": payload.ar_name or "Unknown"},
        {"name": "📊 New Status", "value": _labelled(status_emoji(payload.new_status), payload.new_status)},
    ]
    if payload.previous_status:
        facts.append({
            "name": "📋 Previous Status",
            "value": _labelled(status_emoji(payload.previous_status), payload.previous_status),
        })
    if payload.approval_status:
        facts.append({
            "name": "✔️ Approval Status",
            "value": _labelled(approval_emoji(payload.approval_status), payload.approval_status),
        })

    sections: list[dict[str, Any]] = [{
        "activityTitle": f"{status_emoji(payload.new_status)} Task Status Update",
        "activitySubtitle": f"Project: **{payload.project_name}**",
        "facts": facts,
        "markdown": True,
    }]
    if payload.comment:
        sections.append({
            "activityTitle": "💬 Comment",
            "text": payload.comment,
            "markdown": True,
        })

    return {
        "@type": "MessageCard",
        "@context": "http://schema.org/extensions",
        "themeColor": THEME_COLORS.get(payload.new_status, DEFAULT_THEME_COLOR),
        "summary": f"Task Update: {payload.task_name}",
        "sections": sections,
        "potentialAction": [{
            "@type": "OpenUri",
            "name": "View Task Details",
            "targets": [{"os": "default", "uri": task_url}],
        }],
    }


class TeamsNotifier:
    """
    Sends task status cards to a Teams channel.

    Example:
        notifier = TeamsNotifier(http_client, webhook_url, task_url)
        notifier.send(payload)
    """

    def __init__(self, http_client: httpx.Client, webhook_url: str | None, task_url: str):
        self._http = http_client
        self._webhook_url = webhook_url
        self._task_url = task_url

    def send(self, payload: TeamsNotificationPayload) -> DeliveryResult:
        """
        Raises:
            DeliveryNotConfiguredError: If no webhook URL is configured
            DeliveryFailedError: If the webhook rejects the card
        """
        if not self._webhook_url:
            raise DeliveryNotConfiguredError(PROVIDER, "MS_TEAMS_WEBHOOK_URL")

        card = build_message_card(payload, self._task_url)
        logger.debug(f"Sending Teams message: {json.dumps(card, ensure_ascii=False)}")

        try:
            response = self._http.post(self._webhook_url, json=card)
        except httpx.HTTPError as e:
            raise DeliveryFailedError(PROVIDER, str(e)) from e

        if not response.is_success:
            logger.error(f"Teams webhook error: {response.text}")
            raise DeliveryFailedError(PROVIDER, response.text, status=response.status_code)

        logger.info(f"Teams notification sent for task {payload.task_id}")
        return DeliveryResult(message="Teams notification sent")
