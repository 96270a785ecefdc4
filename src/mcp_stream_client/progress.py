"""Progress routing.

Progress notifications share the stream with every other request. Each one
is delivered only to the request registered under its progress token, and
never settles that request.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from .protocol.envelope import ProgressNotification

if TYPE_CHECKING:
    from .correlation import CorrelationTable

logger = logging.getLogger(__name__)


class ProgressUpdate(BaseModel):
    """Progress as handed to a request's progress callback."""

    progress_token: str | int
    progress: float
    total: float | None = None
    message: str | None = None
    percentage: int | None = None  # None when total is unknown


# Sync callbacks are called inline; coroutine results are scheduled as tasks.
ProgressCallback = Callable[[ProgressUpdate], Any]


def compute_percentage(progress: float, total: float | None) -> int | None:
    """Percentage of `total`, rounded half up. None if total is absent or zero."""
    if not total:
        return None
    return math.floor(100 * progress / total + 0.5)


class ProgressRouter:
    """Delivers progress notifications to the owning request's callback."""

    def __init__(self, table: CorrelationTable) -> None:
        self._table = table

    def route(self, notification: ProgressNotification) -> bool:
        """Route one notification. Returns False if no live request owns it."""
        update = ProgressUpdate(
            progress_token=notification.progress_token,
            progress=notification.progress,
            total=notification.total,
            message=notification.message,
            percentage=compute_percentage(notification.progress, notification.total),
        )

        shown = f"{update.percentage}%" if update.percentage is not None else f"{update.progress:g}"
        logger.debug(f"[{str(update.progress_token)[:8]}...] Progress: {shown} - {update.message}")

        return self._table.route_progress(update.progress_token, update)
