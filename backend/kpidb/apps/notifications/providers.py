from __future__ import annotations

import logging
import os
from typing import Tuple

logger = logging.getLogger(__name__)


class NotificationProvider:
    """
    Outbound delivery capability.

    ``send`` returns normally when the message was handed over and raises
    on failure. Implementations must bound their own latency.
    """

    def send(
        self,
        *,
        template_type: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        raise NotImplementedError


class NoopProvider(NotificationProvider):
    def send(
        self,
        *,
        template_type: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        return None


class LoggingProvider(NotificationProvider):
    """Writes each message to the application log and reports delivery."""

    def send(
        self,
        *,
        template_type: str,
        recipient: str,
        subject: str,
        context: dict,
        correlation_id: str | None,
    ) -> None:
        logger.info(
            "Notification delivered to log",
            extra={
                "template_type": template_type,
                "recipient": recipient,
                "subject": subject,
                "correlation_id": correlation_id,
            },
        )


def get_notification_provider() -> Tuple[NotificationProvider, bool]:
    provider_name = (
        os.getenv("NOTIFICATIONS_PROVIDER")
        or os.getenv("NOTIFICATIONS_EMAIL_PROVIDER")
        or ""
    ).strip().lower()
    if not provider_name or provider_name in {"none", "noop", "disabled"}:
        return NoopProvider(), False
    if provider_name in {"log", "logging"}:
        return LoggingProvider(), True
    raise ValueError(f"Unsupported notification provider: {provider_name}")
