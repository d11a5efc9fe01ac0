import asyncio
import re
from typing import Any, Dict

from python_http_client.exceptions import HTTPError  # type: ignore
from sendgrid import SendGridAPIClient  # type: ignore
from sendgrid.helpers.mail import Content, Email, Mail, To  # type: ignore
from shared.utils.logging import setup_logging

from ..core.settings import get_settings

logger = setup_logging(
    "notification_service.providers.email", log_level=get_settings().LOG_LEVEL
)


class NotificationDeliveryError(Exception):
    """The mail provider did not accept the message; it is redelivered"""


class EmailProvider:
    def __init__(self, api_key: str, from_email: str, from_name: str = ""):
        # Validate required settings
        if not from_email:
            raise ValueError("FROM_EMAIL setting is required")
        if not api_key:
            raise ValueError("SENDGRID_API_KEY setting is required")

        self.sendgrid_api_key = api_key
        self.from_email = from_email
        self.from_name = from_name

    @classmethod
    def from_settings(cls) -> "EmailProvider":
        settings = get_settings()
        return cls(
            api_key=settings.SENDGRID_API_KEY or "",
            from_email=settings.FROM_EMAIL or "",
            from_name=settings.FROM_NAME,
        )

    def _build_mail(
        self, to_email: str, subject: str, content: str, is_html: bool
    ) -> Mail:
        mail_obj = Mail(Email(self.from_email, self.from_name), To(to_email), subject)  # type: ignore

        if is_html:
            # Plain text alternative alongside the HTML body
            plain_text = re.sub(r"<[^>]+>", "", content)
            plain_text = re.sub(r"\s+", " ", plain_text).strip()
            mail_obj.add_content(Content("text/plain", plain_text))  # type: ignore
            mail_obj.add_content(Content("text/html", content))  # type: ignore
        else:
            mail_obj.add_content(Content("text/plain", content))  # type: ignore

        return mail_obj

    def _send_sync(self, mail_obj: Mail) -> Any:
        sg = SendGridAPIClient(api_key=self.sendgrid_api_key)  # type: ignore
        return sg.send(mail_obj)  # type: ignore

    async def send_email(
        self,
        to_email: str,
        subject: str,
        content: str,
        is_html: bool = False,
    ) -> Dict[str, Any]:
        """
        Send an email using SendGrid

        Args:
            to_email: Recipient email address
            subject: Email subject
            content: Rendered email body
            is_html: Whether content is HTML

        Returns:
            Dict containing delivery result

        Raises:
            NotificationDeliveryError: SendGrid rejected the message or was unreachable
        """
        mail_obj = self._build_mail(to_email, subject, content, is_html)

        try:
            # The SendGrid client is blocking
            response = await asyncio.to_thread(self._send_sync, mail_obj)
        except (HTTPError, OSError) as e:
            logger.error(
                "SendGrid error sending email",
                extra={
                    "recipient": to_email,
                    "provider": "sendgrid",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "event_type": "sendgrid_error",
                },
            )
            raise NotificationDeliveryError(f"Failed to send email to {to_email}: {e}") from e

        if response.status_code >= 300:  # type: ignore
            raise NotificationDeliveryError(
                f"SendGrid returned status {response.status_code} for {to_email}"  # type: ignore
            )

        return {
            "success": True,
            "message_id": response.headers.get("X-Message-Id"),  # type: ignore
            "provider": "sendgrid",
            "recipient": to_email,
            "status_code": response.status_code,  # type: ignore
        }
