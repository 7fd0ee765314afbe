"""SMTP delivery of reward codes."""
import logging
import smtplib
from datetime import date
from email.message import EmailMessage
from typing import Optional, Tuple

from ugc_validator.errors import NotificationError
from ugc_validator.config.rules import DISCOUNT_VALUE_TEXT, DISCOUNT_VALIDITY_DAYS

logger = logging.getLogger(__name__)


def compose_reward_email(code: str, order_id: str) -> Tuple[str, str]:
    """Subject and plain-text body of the reward message."""
    subject = "Your discount code for your product review"
    body = (
        "Congratulations! Your review was accepted.\n"
        "\n"
        f"Your discount code: {code}\n"
        f"Value: {DISCOUNT_VALUE_TEXT}\n"
        "\n"
        "Order details:\n"
        f"- Order number: {order_id}\n"
        f"- Date: {date.today().isoformat()}\n"
        "\n"
        f"The code is valid for {DISCOUNT_VALIDITY_DAYS} days from today.\n"
        "Thank you for your review!\n"
    )
    return subject, body


class SmtpNotificationChannel:
    """Sends plain-text mail through one SMTP server per message."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "UGC Validation <noreply@ugc-validation.local>",
        use_tls: bool = True,
        timeout: float = 10.0
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> None:
        """Deliver one message. Raises NotificationError on any SMTP or socket failure."""
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Could not send mail to {to} via {self.host}:{self.port}: {e}") from e

        logger.info(f"Reward email sent to {to}")

    def check_connection(self) -> bool:
        """Open and close a session to see whether the server answers."""
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                smtp.noop()
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"SMTP server {self.host}:{self.port} not reachable: {e}")
            return False
