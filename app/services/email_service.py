"""
Email Service - transactional email via an HTTP mail API.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


# Plain text bodies, markup lives with the email provider
TEMPLATES: Dict[str, Dict[str, str]] = {
    "sketch_ready": {
        "subject": "Your soulmate sketch is ready",
        "body": (
            "Hi there,\n\n"
            "Your soulmate sketch has been completed and is waiting for you.\n\n"
            "View it here: {sketch_url}\n\n"
            "With love,\nThe SoulSketch team"
        ),
    },
}


class EmailService:
    """Service for sending notification emails."""

    def __init__(self):
        self.api_url = settings.email_api_url
        self.api_key = settings.email_api_key
        self.sender = settings.email_from

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def render(self, template: str, data: Dict[str, Any]) -> Dict[str, str]:
        entry = TEMPLATES[template]
        return {
            "subject": entry["subject"].format(**data),
            "body": entry["body"].format(**data),
        }

    async def send(
        self,
        to: str,
        template: str,
        data: Dict[str, Any],
    ) -> Optional[str]:
        """
        Send a templated email.

        Returns a message ID on success, None on failure.
        """
        if not self.enabled:
            logger.warning("Email disabled: set EMAIL_API_KEY")
            return None

        try:
            rendered = self.render(template, data)
        except KeyError as e:
            logger.error(f"Template {template} missing field {e}")
            return None

        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender},
            "subject": rendered["subject"],
            "content": [{"type": "text/plain", "value": rendered["body"]}],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers=headers,
                )

                if response.status_code in (200, 202):
                    message_id = response.headers.get("X-Message-Id") or "accepted"
                    logger.info(f"Email {template} sent: {message_id}")
                    return message_id

                logger.error(f"Email HTTP error: {response.status_code} {response.text}")
                return None

        except httpx.TimeoutException:
            logger.error("Email request timeout")
            return None
        except Exception as e:
            logger.error(f"Email send error: {e}", exc_info=True)
            return None
