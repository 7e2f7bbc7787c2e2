"""Notification Queue - single-slot, auto-expiring user feedback.

Invariants:
    - At most one notification visible; emit() replaces the prior one (last write wins)
    - A notification expires `display_seconds` after it was emitted
    - An expiry timer only ever clears the notification that scheduled it
    - clear() is idempotent
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from realtoken.core.domain_types import Severity
from realtoken.core.errors import RealTokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    message: str
    severity: Severity
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationQueue:
    """Holds the one visible notification and schedules its expiry on the running loop."""

    def __init__(self, display_seconds: float = 3.0):
        self.display_seconds = display_seconds
        self._current: Notification | None = None
        self._expires_at: float | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def current(self) -> Notification | None:
        if self._current is not None and self._expires_at is not None:
            if time.monotonic() >= self._expires_at:
                self.clear()
        return self._current

    def emit(self, message: str, severity: Severity) -> Notification:
        self._cancel_timer()
        notification = Notification(message, severity)
        self._current = notification
        self._expires_at = time.monotonic() + self.display_seconds
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop: expiry is enforced lazily by `current`
            loop = None
        if loop is not None:
            self._timer = loop.call_later(
                self.display_seconds, self._expire, notification,
            )
        log = logger.info if severity == Severity.SUCCESS else logger.warning
        log(f"Notification: {message}", extra={"operation": "notify"})
        return notification

    def emit_error(self, error: RealTokenError) -> Notification:
        message, severity = error.to_notification()
        return self.emit(message, severity)

    def clear(self) -> None:
        self._cancel_timer()
        self._current = None
        self._expires_at = None

    def _expire(self, notification: Notification) -> None:
        if self._current is notification:
            self._timer = None
            self.clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
