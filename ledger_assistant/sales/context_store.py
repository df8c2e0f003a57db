"""
Conversational Context Store

Holds the one pending action each user still owes us an answer for.

CRITICAL: No context older than the TTL is ever returned. Two mechanisms
guarantee it independently:
1. get() checks the age on every read and evicts stale entries
2. set() schedules a timer on the running event loop that evicts the
   entry when the TTL elapses

sweep() runs the age check for every user at once.

Expiry is driven by an injectable clock, so tests advance time instead
of sleeping.
"""

import asyncio
import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from ledger_assistant.models.context import PendingContext
from ledger_assistant.models.ledger import utcnow


logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 300.0

Clock = Callable[[], datetime]
ExpiryCallback = Callable[[str, PendingContext], None]


class ContextStore(ABC):
    """
    Per-user transient state with TTL expiry.

    At most one context per user: set() replaces whatever was there.
    """

    @abstractmethod
    def set(self, user_id: str, context: PendingContext) -> PendingContext:
        """Store a context, replacing any existing one. Returns what was stored."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[PendingContext]:
        """Current unexpired context, or None."""

    @abstractmethod
    def clear(self, user_id: str) -> None:
        """Drop the user's context. Clearing nothing is not an error."""

    @abstractmethod
    def sweep(self) -> int:
        """Evict every expired context. Returns how many were evicted."""


@dataclass
class _Entry:
    context: PendingContext
    token: int
    timer: Optional[asyncio.TimerHandle] = None


class InMemoryContextStore(ContextStore):
    """
    Process-wide dict keyed by user id.

    No lock: operations on different users touch different keys, and a
    single user's messages are processed one at a time.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Optional[Clock] = None,
        on_expire: Optional[ExpiryCallback] = None,
    ):
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utcnow
        self._on_expire = on_expire
        self._entries: dict[str, _Entry] = {}
        self._tokens = itertools.count(1)

    @property
    def ttl_seconds(self) -> float:
        return self._ttl.total_seconds()

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, user_id: str, context: PendingContext) -> PendingContext:
        self._cancel_timer(user_id)

        context = context.model_copy(update={"created_at": self._clock()})
        entry = _Entry(context=context, token=next(self._tokens))
        entry.timer = self._schedule(user_id, entry.token)
        self._entries[user_id] = entry

        logger.debug("context_set", user_id=user_id, kind=context.kind)
        return context

    def get(self, user_id: str) -> Optional[PendingContext]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self._is_expired(entry):
            self._evict(user_id)
            return None
        return entry.context

    def clear(self, user_id: str) -> None:
        self._cancel_timer(user_id)
        if self._entries.pop(user_id, None) is not None:
            logger.debug("context_cleared", user_id=user_id)

    def sweep(self) -> int:
        expired = [uid for uid, entry in self._entries.items() if self._is_expired(entry)]
        for user_id in expired:
            self._evict(user_id)
        return len(expired)

    def _is_expired(self, entry: _Entry) -> bool:
        return self._clock() - entry.context.created_at > self._ttl

    def _schedule(self, user_id: str, token: int) -> Optional[asyncio.TimerHandle]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (sync caller): lazy eviction in get()/sweep() still applies
            return None
        return loop.call_later(self.ttl_seconds, self._expire, user_id, token)

    def _expire(self, user_id: str, token: int) -> None:
        entry = self._entries.get(user_id)
        # A replaced context carries a new token; the old timer must not touch it
        if entry is not None and entry.token == token:
            self._evict(user_id)

    def _evict(self, user_id: str) -> None:
        entry = self._entries.pop(user_id, None)
        if entry is None:
            return
        if entry.timer is not None:
            entry.timer.cancel()
        logger.info("context_expired", user_id=user_id, kind=entry.context.kind)
        if self._on_expire is not None:
            self._on_expire(user_id, entry.context)

    def _cancel_timer(self, user_id: str) -> None:
        entry = self._entries.get(user_id)
        if entry is not None and entry.timer is not None:
            entry.timer.cancel()
