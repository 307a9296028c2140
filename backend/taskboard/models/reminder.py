"""Reminder model for card due-date emails."""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class Reminder(Base):
    """A reminder email, sent once its scheduled time is reached."""

    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_title: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    board_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Stored as naive UTC
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    card_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
