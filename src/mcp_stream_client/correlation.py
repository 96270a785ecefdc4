"""Correlation table: request id -> pending request, progress token -> request id.

Both indexes are updated together; an entry is never reachable through one
without the other. The table is owned by a single ClientSession and is only
touched from that session's event loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .errors import DuplicateKeyError
from .progress import ProgressCallback, ProgressUpdate

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """State for one outstanding request, from registration to settlement."""

    request_id: int | str
    progress_token: str
    future: asyncio.Future[Any]
    on_progress: ProgressCallback | None = None
    deadline: float | None = None  # event loop time
    method: str | None = None
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


class CorrelationTable:
    """Index of all pending requests for one connection."""

    def __init__(self) -> None:
        self._pending: dict[int | str, PendingRequest] = {}
        self._tokens: dict[str | int, int | str] = {}
        self._callback_tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def get(self, request_id: int | str) -> PendingRequest | None:
        return self._pending.get(request_id)

    def request_id_for(self, progress_token: str | int) -> int | str | None:
        return self._tokens.get(progress_token)

    def register(
        self,
        request_id: int | str,
        progress_token: str,
        future: asyncio.Future[Any],
        on_progress: ProgressCallback | None = None,
        deadline: float | None = None,
        method: str | None = None,
    ) -> PendingRequest:
        """Insert a pending request under both its id and its progress token.

        Raises:
            DuplicateKeyError: If the id or token is already registered.
        """
        if request_id in self._pending:
            raise DuplicateKeyError(f"Request id already pending: {request_id}")
        if progress_token in self._tokens:
            raise DuplicateKeyError(f"Progress token already in use: {progress_token}")

        pending = PendingRequest(
            request_id=request_id,
            progress_token=progress_token,
            future=future,
            on_progress=on_progress,
            deadline=deadline,
            method=method,
        )
        self._pending[request_id] = pending
        self._tokens[progress_token] = request_id
        return pending

    def _remove(self, request_id: int | str) -> PendingRequest | None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return None
        self._tokens.pop(pending.progress_token, None)
        if pending.timer is not None:
            pending.timer.cancel()
            pending.timer = None
        return pending

    def settle(
        self,
        request_id: int | str | None,
        result: Any = None,
        *,
        error: BaseException | None = None,
    ) -> bool:
        """Remove a pending request and complete its future exactly once.

        Returns False if the id is not pending (late, duplicate, or foreign
        delivery). That is expected and only logged.
        """
        pending = self._remove(request_id) if request_id is not None else None
        if pending is None:
            logger.warning(f"Received response for unknown request ID: {request_id}")
            return False

        if pending.future.done():
            # Cancelled by the caller; nothing left to deliver to.
            return True

        if error is not None:
            pending.future.set_exception(error)
        else:
            pending.future.set_result(result)
        return True

    def discard(self, request_id: int | str) -> bool:
        """Drop a pending request without completing its future."""
        return self._remove(request_id) is not None

    def route_progress(self, progress_token: str | int, update: ProgressUpdate) -> bool:
        """Invoke the owning request's progress callback, if it is still live."""
        request_id = self._tokens.get(progress_token)
        if request_id is None:
            logger.debug(f"Dropping progress for unknown token: {progress_token}")
            return False

        pending = self._pending[request_id]
        if pending.on_progress is None:
            return True

        try:
            outcome = pending.on_progress(update)
            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._callback_tasks.add(task)
                task.add_done_callback(self._on_callback_done)
        except Exception:
            logger.exception(f"Progress callback failed for request {request_id}")
        return True

    def _on_callback_done(self, task: asyncio.Task[Any]) -> None:
        self._callback_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Async progress callback failed: {task.exception()!r}")

    def drain_all(self, make_error: Callable[[], BaseException]) -> int:
        """Fail every pending request and empty both indexes.

        Each request gets its own exception from `make_error`.
        """
        request_ids = list(self._pending)
        for request_id in request_ids:
            self.settle(request_id, error=make_error())
        self._pending.clear()
        self._tokens.clear()
        return len(request_ids)
