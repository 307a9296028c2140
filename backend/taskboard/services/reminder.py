"""Reminder dispatch for cards with a reminder email and time.

A reminder whose time has already come is sent before it is
acknowledged; later ones are stored and picked up by the server's sweep.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Union

import httpx
from dateutil import parser as date_parser
from sqlalchemy import and_, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.reminder import Reminder
from .notification import NotificationService

logger = logging.getLogger(__name__)


@dataclass
class ReminderRequest:
    """What the dispatcher needs to remind someone about a card."""
    title: str
    recipient_email: str
    scheduled_at: datetime
    board_title: Optional[str] = None
    card_id: Optional[int] = None


def parse_when(value: Union[str, datetime]) -> datetime:
    """Parse a reminder time into an aware UTC datetime.

    Times without an offset are taken as UTC.
    """
    when = value if isinstance(value, datetime) else date_parser.isoparse(value)
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _naive_utc(when: datetime) -> datetime:
    # SQLite keeps naive datetimes; everything stored is UTC
    return parse_when(when).replace(tzinfo=None)


class ReminderService:
    """Stores reminders and sends the due ones."""

    def __init__(self, db: AsyncSession, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService()

    async def schedule(self, request: ReminderRequest, now: Optional[datetime] = None) -> Reminder:
        """Record a reminder, sending it right away if it is already due."""
        now = now or _utc_now()
        reminder = Reminder(
            card_title=request.title,
            recipient_email=request.recipient_email,
            board_title=request.board_title,
            card_id=request.card_id,
            scheduled_at=_naive_utc(request.scheduled_at),
            sent=False,
        )

        if parse_when(request.scheduled_at) <= parse_when(now):
            await self._send(reminder, now)

        self.db.add(reminder)
        await self.db.flush()
        logger.info(f"Reminder {reminder.id} recorded for '{reminder.card_title}' (sent={reminder.sent})")
        return reminder

    async def _send(self, reminder: Reminder, now: datetime) -> bool:
        success = await self.notifier.notify_reminder(
            reminder.recipient_email,
            reminder.card_title,
            reminder.scheduled_at,
            reminder.board_title,
        )
        if success:
            reminder.sent = True
            reminder.sent_at = _naive_utc(now)
        else:
            logger.warning(f"Reminder for '{reminder.card_title}' not delivered, will retry")
        return success

    async def list_reminders(self) -> list[Reminder]:
        result = await self.db.execute(select(Reminder).order_by(Reminder.scheduled_at))
        return list(result.scalars().all())

    async def get_reminder(self, reminder_id: int) -> Optional[Reminder]:
        result = await self.db.execute(select(Reminder).where(Reminder.id == reminder_id))
        return result.scalar_one_or_none()

    async def delete_reminder(self, reminder_id: int) -> bool:
        reminder = await self.get_reminder(reminder_id)
        if reminder is None:
            return False

        await self.db.delete(reminder)
        await self.db.flush()
        return True

    async def dispatch_due(self, now: Optional[datetime] = None) -> dict[str, int]:
        """Send every unsent reminder whose time has come."""
        now = now or _utc_now()
        result = await self.db.execute(
            select(Reminder).where(
                and_(
                    Reminder.sent == False,  # noqa: E712
                    Reminder.scheduled_at <= _naive_utc(now),
                )
            ).order_by(Reminder.scheduled_at)
        )
        pending = list(result.scalars().all())

        sent = 0
        for reminder in pending:
            if await self._send(reminder, now):
                sent += 1

        await self.db.flush()
        if pending:
            logger.info(f"Reminder check: {sent} of {len(pending)} due reminders sent")
        return {"due": len(pending), "sent": sent}

    async def cleanup_sent(self, retention_hours: int = 24, now: Optional[datetime] = None) -> int:
        """Delete sent reminders scheduled more than ``retention_hours`` ago."""
        now = now or _utc_now()
        cutoff = _naive_utc(now) - timedelta(hours=retention_hours)
        result = await self.db.execute(
            delete(Reminder).where(
                and_(Reminder.sent == True, Reminder.scheduled_at < cutoff)  # noqa: E712
            )
        )
        await self.db.flush()
        removed = result.rowcount or 0
        if removed:
            logger.info(f"Cleanup: {removed} sent reminders removed")
        return removed


class ReminderClient:
    """Hands reminders to the board server over HTTP."""

    def __init__(
        self,
        endpoint_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=endpoint_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def schedule(self, request: ReminderRequest) -> bool:
        payload = {
            "cardTitle": request.title,
            "reminderEmail": request.recipient_email,
            "reminderDateTime": parse_when(request.scheduled_at).isoformat(),
            "boardTitle": request.board_title,
            "cardId": request.card_id,
        }
        try:
            response = await self._client.post("/api/reminders", json=payload)
            response.raise_for_status()
            return bool(response.json().get("success"))
        except Exception as e:
            logger.error(f"Failed to hand reminder to server: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
