# =============================================================================
# core/models/notification.py - Notification Schemas
# =============================================================================
# Models for the notification dispatchers:
# - EmailStatus / EmailNotification: rows of the email_notifications queue
# - EmailQueueResult: summary of one queue processing run
# - TeamsNotificationPayload: task status change posted to Microsoft Teams
# - TaskAssignmentEmailRequest: task assignment alert sent to the admin
# - DigestResult: outcome of the daily digest generation
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EmailStatus(str, Enum):
    """
    Delivery state of a queued email.

    Flow: pending -> sent
          pending -> failed -> (reconciliation) pending -> ...
    """
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class EmailNotification(BaseModel):
    """One row of the email_notifications table."""
    model_config = ConfigDict(extra="ignore")

    id: UUID
    recipient_email: str
    email_type: Optional[str] = None
    subject: str = ""
    body_html: Optional[str] = None
    body_text: Optional[str] = None
    status: EmailStatus = EmailStatus.PENDING
    attempts: int = Field(default=0, ge=0)
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class EmailQueueResult(BaseModel):
    """Summary returned by one queue processing run."""
    success: bool = True
    message: str
    processed: int = 0
    failed: int = 0


class TeamsNotificationPayload(BaseModel):
    """
    Task status change to announce in Teams.

    Example:
        {
            "taskId": "t-1",
            "taskName": "Site plan review",
            "projectName": "123 Main St ADU",
            "arName": "Alex",
            "newStatus": "completed",
            "previousStatus": "started"
        }
    """
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(..., alias="taskId")
    task_name: str = Field(..., alias="taskName")
    project_name: str = Field(..., alias="projectName")
    ar_name: Optional[str] = Field(default=None, alias="arName")
    new_status: str = Field(..., alias="newStatus")
    previous_status: Optional[str] = Field(default=None, alias="previousStatus")
    comment: Optional[str] = None
    approval_status: Optional[str] = Field(default=None, alias="approvalStatus")


class TaskAssignmentEmailRequest(BaseModel):
    """Task assignment details; all fields are required (checked by the service)."""
    model_config = ConfigDict(populate_by_name=True)

    assigned_user_name: Optional[str] = Field(default=None, alias="assignedUserName")
    project_name: Optional[str] = Field(default=None, alias="projectName")
    task_name: Optional[str] = Field(default=None, alias="taskName")
    due_date: Optional[str] = Field(default=None, alias="dueDate")


class DeliveryResult(BaseModel):
    """Generic success body for single-message dispatchers."""
    success: bool = True
    message: str
    id: Optional[str] = None


class DigestResult(BaseModel):
    """Outcome of the daily digest generation."""
    success: bool = True
    message: str
    queued_count: int = Field(default=0, alias="queuedCount")
    generated_at: datetime = Field(..., alias="generatedAt")

    model_config = ConfigDict(populate_by_name=True)
