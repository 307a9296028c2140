"""Reminder API routes."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_config
from ..models.database import get_db
from ..services.notification import NotificationService
from ..services.reminder import ReminderRequest, ReminderService, parse_when


router = APIRouter(prefix="/api/reminders", tags=["reminders"])


class ReminderSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    card_title: str = Field(alias="cardTitle")
    reminder_email: str = Field(alias="reminderEmail")
    reminder_date_time: str = Field(alias="reminderDateTime")
    board_title: Optional[str] = Field(default=None, alias="boardTitle")
    card_id: Optional[int] = Field(default=None, alias="cardId")
    sent: bool
    created_at: str = Field(alias="createdAt")


class CreateReminderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_title: Optional[str] = Field(default=None, alias="cardTitle")
    reminder_email: Optional[str] = Field(default=None, alias="reminderEmail")
    reminder_date_time: Optional[str] = Field(default=None, alias="reminderDateTime")
    board_title: Optional[str] = Field(default=None, alias="boardTitle")
    card_id: Optional[int] = Field(default=None, alias="cardId")


def get_notifier() -> NotificationService:
    """Notifier used to deliver reminders."""
    return NotificationService()


def reminder_to_schema(reminder) -> dict:
    """Convert a Reminder model to its wire shape."""
    return ReminderSchema(
        id=reminder.id,
        card_title=reminder.card_title,
        reminder_email=reminder.recipient_email,
        reminder_date_time=reminder.scheduled_at.isoformat(),
        board_title=reminder.board_title,
        card_id=reminder.card_id,
        sent=reminder.sent,
        created_at=reminder.created_at.isoformat(),
    ).model_dump(by_alias=True)


@router.post("")
async def create_reminder(
    request: CreateReminderRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Record a reminder; one that is already due is sent immediately."""
    if not request.card_title or not request.reminder_email or not request.reminder_date_time:
        raise HTTPException(status_code=400, detail="cardTitle, reminderEmail and reminderDateTime are required")

    try:
        scheduled_at = parse_when(request.reminder_date_time)
    except (ValueError, OverflowError):
        raise HTTPException(status_code=400, detail=f"Invalid reminderDateTime: {request.reminder_date_time}")

    reminder_service = ReminderService(db, notifier)
    reminder = await reminder_service.schedule(ReminderRequest(
        title=request.card_title,
        recipient_email=request.reminder_email,
        scheduled_at=scheduled_at,
        board_title=request.board_title,
        card_id=request.card_id,
    ))

    return {
        "success": True,
        "message": "Reminder scheduled",
        "reminder": reminder_to_schema(reminder),
    }


@router.get("")
async def get_reminders(db: AsyncSession = Depends(get_db)):
    """List every stored reminder."""
    reminder_service = ReminderService(db)
    reminders = await reminder_service.list_reminders()
    return [reminder_to_schema(r) for r in reminders]


@router.delete("/{reminder_id}")
async def delete_reminder(
    reminder_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Delete a reminder."""
    reminder_service = ReminderService(db)
    success = await reminder_service.delete_reminder(reminder_id)

    if not success:
        raise HTTPException(status_code=404, detail="Reminder not found")

    return {"success": True, "message": "Reminder deleted"}


@router.post("/check")
async def check_reminders(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Send the reminders that are due and clean up old sent ones."""
    config = get_config()
    reminder_service = ReminderService(db, notifier)
    result = await reminder_service.dispatch_due()
    removed = await reminder_service.cleanup_sent(config.reminders.retention_hours)

    return {
        "success": True,
        "due": result["due"],
        "sent": result["sent"],
        "removed": removed,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
