"""
Types shared by the access-control and abuse-mitigation engine.

This module defines the enums and dataclasses that flow between the command
dispatcher, the permission evaluator, the rate limiter, the suspicious
activity detector and the security event store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

import discord


def utcnow() -> datetime:
    """Default clock used by every stateful component."""
    return datetime.now(timezone.utc)


class PermissionTier(Enum):
    """Coarse access level a command declares."""

    ADMIN = "admin"
    MEMBER = "member"
    ALL = "all"

    def __str__(self) -> str:
        return self.value


class EventType(Enum):
    """Kinds of security events written to the event store."""

    COMMAND_EXECUTION = "command_execution"
    PERMISSION_DENIED = "permission_denied"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"

    def __str__(self) -> str:
        return self.value


class Severity(Enum):
    """Ordinal severity of a security event."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def __str__(self) -> str:
        return self.value

    @property
    def escalates(self) -> bool:
        """Whether events of this severity are sent to operators."""
        return self in (Severity.HIGH, Severity.CRITICAL)


class DenialKind(Enum):
    """Which check rejected a command invocation."""

    GUILD_ONLY = "guild_only"
    CHANNEL_RESTRICTION = "channel_restriction"
    ROLE_RESTRICTION = "role_restriction"
    USER_RESTRICTION = "user_restriction"
    RATE_LIMITED = "rate_limited"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    INTERNAL_ERROR = "internal_error"

    def __str__(self) -> str:
        return self.value


def _ids(values: Iterable[Any] | None) -> FrozenSet[str]:
    return frozenset(str(value) for value in values or ())


@dataclass(frozen=True, slots=True)
class CallerContext:
    """Who is invoking which command, and where.

    Attributes:
        user_id: Snowflake of the invoking user, as a string.
        user_name: Display name used in logs and alerts.
        channel_id: Channel the command was issued in.
        command_name: Top-level command name.
        guild_id: Guild the command was issued in, None for direct messages.
        role_ids: Role snowflakes the caller holds in that guild.
        in_guild: False when the caller has no guild membership context.
    """

    user_id: str
    user_name: str
    channel_id: str
    command_name: str
    guild_id: Optional[str] = None
    role_ids: FrozenSet[str] = frozenset()
    in_guild: bool = True

    @classmethod
    def build(
        cls,
        user_id: Any,
        user_name: str,
        channel_id: Any,
        command_name: str,
        guild_id: Any = None,
        role_ids: Iterable[Any] | None = None,
        in_guild: bool | None = None,
    ) -> "CallerContext":
        """Normalise ids to strings and infer ``in_guild`` from ``guild_id``."""
        return cls(
            user_id=str(user_id),
            user_name=user_name,
            channel_id=str(channel_id),
            command_name=command_name,
            guild_id=str(guild_id) if guild_id is not None else None,
            role_ids=_ids(role_ids),
            in_guild=guild_id is not None if in_guild is None else in_guild,
        )

    @classmethod
    def from_application_context(cls, ctx: discord.ApplicationContext) -> "CallerContext":
        """Extract the caller context from a py-cord slash command invocation."""
        user = ctx.author
        is_member = isinstance(user, discord.Member)
        role_ids = [role.id for role in user.roles] if is_member else []
        return cls.build(
            user_id=user.id,
            user_name=user.name,
            channel_id=ctx.channel_id,
            command_name=ctx.command.qualified_name.split(" ")[0] if ctx.command else "unknown",
            guild_id=ctx.guild_id,
            role_ids=role_ids,
            in_guild=ctx.guild_id is not None and is_member,
        )


@dataclass(frozen=True, slots=True)
class PermissionRequirement:
    """Access requirement a command declares at registration.

    Empty sets mean "no restriction on that axis", never "deny all".
    """

    tier: PermissionTier = PermissionTier.ALL
    allowed_roles: FrozenSet[str] = frozenset()
    allowed_users: FrozenSet[str] = frozenset()
    allowed_channels: FrozenSet[str] = frozenset()
    restricted_channels: FrozenSet[str] = frozenset()

    @classmethod
    def build(
        cls,
        tier: PermissionTier | str = PermissionTier.ALL,
        allowed_roles: Iterable[Any] | None = None,
        allowed_users: Iterable[Any] | None = None,
        allowed_channels: Iterable[Any] | None = None,
        restricted_channels: Iterable[Any] | None = None,
    ) -> "PermissionRequirement":
        return cls(
            tier=PermissionTier(tier),
            allowed_roles=_ids(allowed_roles),
            allowed_users=_ids(allowed_users),
            allowed_channels=_ids(allowed_channels),
            restricted_channels=_ids(restricted_channels),
        )


@dataclass(frozen=True, slots=True)
class Verdict:
    """Allow/deny outcome handed back to the dispatcher."""

    allowed: bool
    reason: Optional[str] = None
    denial: Optional[DenialKind] = None
    reset_time: Optional[datetime] = None

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(allowed=True)

    @classmethod
    def deny(cls, denial: DenialKind, reason: str, reset_time: Optional[datetime] = None) -> "Verdict":
        return cls(allowed=False, reason=reason, denial=denial, reset_time=reset_time)


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    """Maximum invocations per fixed window for one command."""

    limit: int
    window: timedelta

    @property
    def window_seconds(self) -> float:
        return self.window.total_seconds()


@dataclass(slots=True)
class RateLimitEntry:
    """Mutable counter for one (user, command) window."""

    count: int
    reset_time: datetime


@dataclass(frozen=True, slots=True)
class RateLimitResult:
    """Outcome of a single rate-limit check."""

    allowed: bool
    remaining: int
    reset_time: datetime
    count: int
    limit: int


@dataclass(frozen=True, slots=True)
class SuspicionResult:
    """Outcome of recording one invocation in the burst detector."""

    flagged: bool
    count: int
    window_seconds: int


@dataclass(frozen=True, slots=True)
class SecurityEvent:
    """Immutable record of a security decision.

    Attributes:
        type: What kind of decision produced the event.
        user_id: Snowflake of the caller.
        user_name: Caller's display name at the time of the event.
        severity: Drives whether the event is escalated to operators.
        guild_id: Guild of the invocation, if any.
        channel_id: Channel of the invocation, if any.
        command_name: Command that was invoked, if known.
        details: Free-form key/value context, serialised as JSON when stored.
        timestamp: When the decision was made (aware UTC).
    """

    type: EventType
    user_id: str
    user_name: str
    severity: Severity
    guild_id: Optional[str] = None
    channel_id: Optional[str] = None
    command_name: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_context(
        cls,
        context: CallerContext,
        event_type: EventType,
        severity: Severity,
        details: Dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> "SecurityEvent":
        return cls(
            type=event_type,
            user_id=context.user_id,
            user_name=context.user_name,
            severity=severity,
            guild_id=context.guild_id,
            channel_id=context.channel_id,
            command_name=context.command_name,
            details=dict(details or {}),
            timestamp=timestamp or utcnow(),
        )


@dataclass(frozen=True, slots=True)
class StoredSecurityEvent:
    """A security event read back from the store, with its row id."""

    id: int
    event: SecurityEvent


@dataclass(frozen=True, slots=True)
class SecurityStats:
    """Aggregate engine state for the operational status report."""

    active_rate_limits: int
    total_rate_limits: int
    suspicious_activity_count: int
    recent_security_event_count: int
