"""
Security facade: one call per command invocation.

``SecurityEngine.authorize`` walks a fixed sequence and stops at the first
denial::

    rate limit -> suspicious activity -> permissions -> admitted

Each terminal state produces exactly one security event. The decision and
every in-memory state change happen synchronously in ``_decide``; only
afterwards does ``authorize`` await the event write and any escalation,
so a slow database or DM send can never desynchronise a counter from the
verdict it produced.

A denial is final for that invocation. The caller has to run the command
again to be re-evaluated.

The engine is built once at startup and handed to the cogs that need it;
tests build their own instances.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional, Tuple

from clubguard.configuration.app_configuration import AppConfig
from clubguard.configuration.permission_settings import PermissionSettings
from clubguard.configuration.security_settings import SecuritySettings
from clubguard.datatypes.security_datatypes import (
    CallerContext,
    DenialKind,
    EventType,
    PermissionRequirement,
    SecurityEvent,
    SecurityStats,
    Severity,
    Verdict,
    utcnow,
)
from clubguard.security.cleanup import CleanupScheduler
from clubguard.security.event_logger import SecurityEventLogger
from clubguard.security.event_store import SecurityEventStore
from clubguard.security.notifier import EscalationNotifier
from clubguard.security.permissions import PermissionEvaluator
from clubguard.security.rate_limiter import RateLimiter, RateLimitTable
from clubguard.security.suspicious_activity import SuspiciousActivityDetector
from clubguard.util.logger import get_logger

logger = get_logger("security_engine")

GENERIC_ERROR_MESSAGE = "Something went wrong while checking this command. Please try again later."
SUSPICIOUS_ACTIVITY_MESSAGE = (
    "Suspicious activity detected. Your commands are temporarily restricted."
)

# Permission denials that name a specific user are escalated
_DENIAL_SEVERITY = {
    DenialKind.GUILD_ONLY: Severity.MEDIUM,
    DenialKind.CHANNEL_RESTRICTION: Severity.MEDIUM,
    DenialKind.ROLE_RESTRICTION: Severity.MEDIUM,
    DenialKind.USER_RESTRICTION: Severity.HIGH,
}


def rate_limit_message(reset_time: datetime) -> str:
    return f"Rate limit reached. Try again <t:{int(reset_time.timestamp())}:R>."


class SecurityEngine:
    """Access control and abuse mitigation for slash commands."""

    def __init__(
        self,
        permissions: PermissionSettings,
        rate_limits: RateLimitTable,
        settings: Optional[SecuritySettings] = None,
        store: Optional[SecurityEventStore] = None,
        notifier: Optional[EscalationNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings or SecuritySettings()
        self.store = store
        self.notifier = notifier
        self._clock = clock

        self.evaluator = PermissionEvaluator(permissions)
        self.rate_limiter = RateLimiter(rate_limits, clock=clock)
        self.detector = SuspiciousActivityDetector(
            threshold=self.settings.suspicious_threshold,
            bucket_seconds=self.settings.bucket_seconds,
            retention_buckets=self.settings.bucket_retention,
            clock=clock,
        )
        self.event_logger = SecurityEventLogger(store=store, notifier=notifier)
        self.cleanup = CleanupScheduler(
            self.rate_limiter,
            self.detector,
            interval=self.settings.cleanup_interval_seconds,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        store: Optional[SecurityEventStore] = None,
        notifier: Optional[EscalationNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "SecurityEngine":
        """Build an engine from the application config.

        Raises:
            ValueError: If the rate-limit table is invalid.
        """
        return cls(
            permissions=config.permissions,
            rate_limits=RateLimitTable.from_config(config.rate_limits),
            settings=config.security,
            store=store,
            notifier=notifier,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Decision path
    # ------------------------------------------------------------------

    async def authorize(
        self,
        context: CallerContext,
        requirement: PermissionRequirement,
        enable_rate_limit: bool = True,
    ) -> Verdict:
        """Decide whether ``context`` may run its command, then record why."""
        try:
            verdict, event = self._decide(context, requirement, enable_rate_limit)
        except Exception:
            logger.exception(
                "[SECURITY ENGINE] Check failed for %s by user %s, denying",
                context.command_name, context.user_id,
            )
            return Verdict.deny(DenialKind.INTERNAL_ERROR, GENERIC_ERROR_MESSAGE)

        await self.event_logger.log(event)
        return verdict

    def _decide(
        self,
        context: CallerContext,
        requirement: PermissionRequirement,
        enable_rate_limit: bool,
    ) -> Tuple[Verdict, SecurityEvent]:
        now = self._clock()

        if enable_rate_limit:
            result = self.rate_limiter.check(context.user_id, context.command_name)
            if not result.allowed:
                rule = self.rate_limiter.table.rule_for(context.command_name)
                event = SecurityEvent.from_context(
                    context,
                    EventType.RATE_LIMIT_EXCEEDED,
                    Severity.MEDIUM,
                    details={
                        "count": result.count,
                        "limit": result.limit,
                        "window_seconds": rule.window_seconds,
                    },
                    timestamp=now,
                )
                verdict = Verdict.deny(
                    DenialKind.RATE_LIMITED,
                    rate_limit_message(result.reset_time),
                    reset_time=result.reset_time,
                )
                return verdict, event

        suspicion = self.detector.record(context.user_id)
        if suspicion.flagged:
            event = SecurityEvent.from_context(
                context,
                EventType.SUSPICIOUS_ACTIVITY,
                Severity.HIGH,
                details={
                    "rapid_command_count": suspicion.count,
                    "window_seconds": suspicion.window_seconds,
                },
                timestamp=now,
            )
            return Verdict.deny(DenialKind.SUSPICIOUS_ACTIVITY, SUSPICIOUS_ACTIVITY_MESSAGE), event

        verdict = self.evaluator.evaluate(context, requirement)
        if not verdict.allowed:
            event = SecurityEvent.from_context(
                context,
                EventType.PERMISSION_DENIED,
                _DENIAL_SEVERITY.get(verdict.denial, Severity.MEDIUM),
                details={"reason": str(verdict.denial), "message": verdict.reason},
                timestamp=now,
            )
            return verdict, event

        event = SecurityEvent.from_context(
            context,
            EventType.COMMAND_EXECUTION,
            Severity.LOW,
            details={"result": "success"},
            timestamp=now,
        )
        return verdict, event

    # ------------------------------------------------------------------
    # Reporting and lifecycle
    # ------------------------------------------------------------------

    async def stats(self) -> SecurityStats:
        """Aggregate counters for the operator status report."""
        total, active = self.rate_limiter.snapshot()
        recent = 0
        if self.store is not None:
            try:
                recent = await self.store.count_since(self.settings.recent_event_hours)
            except Exception as exc:
                logger.error("[SECURITY ENGINE] Failed to count recent security events: %s", exc)

        return SecurityStats(
            active_rate_limits=active,
            total_rate_limits=total,
            suspicious_activity_count=self.detector.tracked_buckets,
            recent_security_event_count=recent,
        )

    def start(self) -> None:
        """Start the periodic cleanup. Must be called from a running event loop."""
        self.cleanup.start()

    async def shutdown(self) -> None:
        await self.cleanup.shutdown()
        self.clear()
        logger.info("[SECURITY ENGINE] Shutdown complete")

    def clear(self) -> None:
        """Drop all in-memory rate-limit and activity state."""
        self.rate_limiter.clear()
        self.detector.clear()
