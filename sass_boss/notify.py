"""Notification sink for compile results."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    title: str
    subtitle: str | None = None
    message: str
    icon: str | None = None


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LogNotifier:
    """Report notifications through logging instead of a desktop popup."""

    def notify(self, notification: Notification) -> None:
        parts = [notification.title]
        if notification.subtitle:
            parts.append(notification.subtitle)
        parts.append(notification.message)
        logger.info(" | ".join(parts))


def send(notifier: Notifier, notification: Notification):
    """Fire and forget: a broken sink must not interrupt a compile."""
    try:
        notifier.notify(notification)
    except Exception:
        logger.exception(f"Notifier {type(notifier).__name__} failed")
