"""Notification service for reminder emails."""

import logging
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

import aiosmtplib

from ..config import Config, get_config

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends reminder emails over SMTP."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    async def notify_reminder(
        self,
        recipient_email: str,
        card_title: str,
        scheduled_at: datetime,
        board_title: Optional[str] = None,
    ) -> bool:
        """Send the reminder for a card. Returns True when the mail was accepted."""
        message = f"Reminder: {card_title}\n"
        message += f"Board: {board_title or 'Unknown'}\n"
        message += f"Scheduled for: {scheduled_at.strftime('%Y-%m-%d %H:%M')} UTC\n"
        message += "This is an automatic reminder from your task board."

        subject = f"[Taskboard] Reminder: {card_title}"
        return await self._send_email(recipient_email, subject, message)

    async def _send_email(self, to_email: str, subject: str, body: str) -> bool:
        """Send an email notification."""
        if not self.config.smtp.enabled or not self.config.smtp.host:
            logger.debug("Email notifications disabled or SMTP not configured")
            return False

        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = f"{self.config.smtp.from_name} <{self.config.smtp.from_email}>"
            msg["To"] = to_email

            # Plain text version
            text_part = MIMEText(body, "plain")
            msg.attach(text_part)

            # HTML version
            html_body = f"""
            <html>
            <body style="font-family: Arial, sans-serif; padding: 20px;">
                <div style="background-color: #f8f9fa; padding: 20px; border-radius: 8px; color: #333;">
                    <h2 style="color: #007bff; margin-top: 0;">Task Reminder</h2>
                    <pre style="white-space: pre-wrap; font-family: inherit;">{escape(body)}</pre>
                </div>
            </body>
            </html>
            """
            html_part = MIMEText(html_body, "html")
            msg.attach(html_part)

            await aiosmtplib.send(
                msg,
                hostname=self.config.smtp.host,
                port=self.config.smtp.port,
                username=self.config.smtp.username or None,
                password=self.config.smtp.password or None,
                use_tls=self.config.smtp.use_tls,
                start_tls=self.config.smtp.start_tls and not self.config.smtp.use_tls,
            )

            logger.info(f"Reminder email sent to {to_email}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email notification: {e}")
            return False
