"""
Fixed-window rate limiting per (user, command).

Each key holds a single counter and the time its window resets. A burst
straddling a window boundary can reach twice the nominal limit; the
fixed window keeps state O(1) per key and makes ``check`` trivial to
reason about.

``check`` and ``sweep`` never await, so on the bot's event loop a read of
an entry and the write that follows it cannot interleave with another
invocation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Tuple

from clubguard.datatypes.security_datatypes import (
    RateLimitEntry,
    RateLimitResult,
    RateLimitRule,
    utcnow,
)
from clubguard.util.logger import get_logger

logger = get_logger("rate_limiter")

DEFAULT_KEY = "default"

RateLimitKey = Tuple[str, str]


@dataclass(frozen=True)
class RateLimitTable:
    """Static ``command -> RateLimitRule`` table with a mandatory default."""

    rules: Mapping[str, RateLimitRule]

    def __post_init__(self) -> None:
        if DEFAULT_KEY not in self.rules:
            raise ValueError("Rate limit table must define a 'default' entry")
        for name, rule in self.rules.items():
            if rule.limit < 1:
                raise ValueError(f"Rate limit for '{name}' must be at least 1, got {rule.limit}")
            if rule.window <= timedelta(0):
                raise ValueError(f"Rate limit window for '{name}' must be positive")
        object.__setattr__(self, "rules", MappingProxyType(dict(self.rules)))

    @classmethod
    def from_config(cls, table: Mapping[str, Any]) -> "RateLimitTable":
        """Build a validated table from the ``rate_limits`` config section.

        Each value must be a mapping with ``limit`` and ``window_seconds``.

        Raises:
            ValueError: If the table is malformed or lacks ``default``.
        """
        rules: Dict[str, RateLimitRule] = {}
        for name, spec in table.items():
            if not isinstance(spec, Mapping) or "limit" not in spec or "window_seconds" not in spec:
                raise ValueError(f"Rate limit for '{name}' needs 'limit' and 'window_seconds'")
            try:
                rules[str(name)] = RateLimitRule(
                    limit=int(spec["limit"]),
                    window=timedelta(seconds=float(spec["window_seconds"])),
                )
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Rate limit for '{name}' is not numeric: {exc}") from exc
        return cls(rules)

    @property
    def default(self) -> RateLimitRule:
        return self.rules[DEFAULT_KEY]

    def rule_for(self, command_name: str) -> RateLimitRule:
        """Rule for ``command_name``; unknown commands get the default."""
        return self.rules.get(command_name, self.default)


class RateLimiter:
    """In-memory fixed-window counters keyed by (user id, command name)."""

    def __init__(
        self,
        table: RateLimitTable,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.table = table
        self._clock = clock
        self._entries: Dict[RateLimitKey, RateLimitEntry] = {}

    def check(self, user_id: str, command_name: str) -> RateLimitResult:
        """Admit or reject one invocation, counting it when admitted."""
        rule = self.table.rule_for(command_name)
        now = self._clock()
        key = (user_id, command_name)
        entry = self._entries.get(key)

        if entry is None or entry.reset_time <= now:
            # Expired entries are replaced, never incremented
            entry = RateLimitEntry(count=1, reset_time=now + rule.window)
            self._entries[key] = entry
            return RateLimitResult(
                allowed=True,
                remaining=rule.limit - 1,
                reset_time=entry.reset_time,
                count=1,
                limit=rule.limit,
            )

        if entry.count >= rule.limit:
            logger.debug(
                "[RATE LIMIT] Rejected %s for user %s (%d/%d)",
                command_name, user_id, entry.count, rule.limit,
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=entry.reset_time,
                count=entry.count,
                limit=rule.limit,
            )

        entry.count += 1
        return RateLimitResult(
            allowed=True,
            remaining=rule.limit - entry.count,
            reset_time=entry.reset_time,
            count=entry.count,
            limit=rule.limit,
        )

    def peek(self, user_id: str, command_name: str) -> RateLimitEntry | None:
        """Current entry for a key without touching it."""
        return self._entries.get((user_id, command_name))

    def sweep(self, now: datetime | None = None) -> int:
        """Remove every entry whose window has reset. Returns the number removed."""
        now = now or self._clock()
        removed = 0
        for key in [key for key, entry in list(self._entries.items()) if entry.reset_time <= now]:
            # A concurrent check may already have replaced the entry
            entry = self._entries.get(key)
            if entry is not None and entry.reset_time <= now:
                del self._entries[key]
                removed += 1
        return removed

    def snapshot(self, now: datetime | None = None) -> Tuple[int, int]:
        """Return ``(total, active)`` entry counts."""
        now = now or self._clock()
        active = sum(1 for entry in self._entries.values() if entry.reset_time > now)
        return len(self._entries), active

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
