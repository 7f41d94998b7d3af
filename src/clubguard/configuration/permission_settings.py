from typing import Any, Dict, FrozenSet, Iterable


def _id_set(values: Any) -> FrozenSet[str]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(str(value) for value in values)


class PermissionSettings:
    """Typed accessors for the guild-wide ``permissions`` section.

    Role and channel ids are normalised to strings so they compare equal to
    the ids carried by :class:`~clubguard.datatypes.security_datatypes.CallerContext`
    regardless of whether the YAML file quoted them.
    """

    def __init__(self, data: Dict[str, Any] | None = None) -> None:
        self.data: Dict[str, Any] = data or {}

    @property
    def admin_role_ids(self) -> FrozenSet[str]:
        return _id_set(self.data.get("admin_role_ids"))

    @property
    def member_role_ids(self) -> FrozenSet[str]:
        return _id_set(self.data.get("member_role_ids"))

    @property
    def allowed_channel_ids(self) -> FrozenSet[str]:
        return _id_set(self.data.get("allowed_channel_ids"))

    def is_admin(self, role_ids: Iterable[str]) -> bool:
        return not self.admin_role_ids.isdisjoint(role_ids)

    def is_member(self, role_ids: Iterable[str]) -> bool:
        return not self.member_role_ids.isdisjoint(role_ids)

    def is_allowed_channel(self, channel_id: str) -> bool:
        """An empty global list allows every channel."""
        allowed = self.allowed_channel_ids
        return not allowed or channel_id in allowed
