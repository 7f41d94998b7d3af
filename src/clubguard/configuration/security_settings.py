from typing import Any, Dict


class SecuritySettings:
    """Helper exposing typed accessors for the ``security`` section.

    Missing keys fall back to the engine's built-in defaults.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def cleanup_interval_seconds(self) -> float:
        return float(self.data.get("cleanup_interval_seconds", 300.0))

    @property
    def suspicious_threshold(self) -> int:
        return int(self.data.get("suspicious_threshold", 20))

    @property
    def bucket_seconds(self) -> int:
        return int(self.data.get("bucket_seconds", 10))

    @property
    def bucket_retention(self) -> int:
        return int(self.data.get("bucket_retention", 6))

    @property
    def escalation_max_recipients(self) -> int:
        return int(self.data.get("escalation_max_recipients", 3))

    @property
    def recent_event_hours(self) -> int:
        return int(self.data.get("recent_event_hours", 24))

    @property
    def retention_days(self) -> int:
        return int(self.data.get("retention_days", 30))
