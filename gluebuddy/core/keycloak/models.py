"""Typed views over Keycloak group and user representations.

Required fields are validated once, when a payload is parsed, so the rest
of the gather pipeline works with non-optional values.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import MalformedResponseError


def _require_str(payload: dict, key: str, kind: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedResponseError(f"{kind} representation is missing '{key}' (keys: {', '.join(sorted(map(str, payload)))})")
    return value


_DONE = object()


def _group_fields(payload: Any) -> tuple[str, str, str, list]:
    """Validate one group level and return (id, name, path, subGroups)."""
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"Group representation must be an object, got {type(payload).__name__}")
    sub_groups = payload.get("subGroups") or []
    if not isinstance(sub_groups, list):
        raise MalformedResponseError(f"Group {payload.get('path')!r}: 'subGroups' must be a list")
    return (
        _require_str(payload, "id", "Group"),
        _require_str(payload, "name", "Group"),
        _require_str(payload, "path", "Group"),
        sub_groups,
    )


@dataclass(frozen=True)
class Group:
    """A Keycloak group and its subgroup tree."""
    id: str
    name: str
    path: str
    # Identity is id, name and path; children stay out of repr, eq and hash
    sub_groups: tuple[Group, ...] = field(default_factory=tuple, repr=False, compare=False)

    @classmethod
    def from_representation(cls, payload: Any) -> Group:
        """Build a group from a ``GroupRepresentation`` dict.

        ``subGroups`` may be absent (newer Keycloak releases drop it when
        empty); ``id``, ``name`` and ``path`` may not.

        Raises:
            MalformedResponseError: If a required field is missing or mistyped
        """
        # (fields, unparsed children, parsed children); a node is built
        # once all of its children are
        fields = _group_fields(payload)
        stack = [(fields, iter(fields[3]), [])]
        while True:
            fields, pending, built = stack[-1]
            child = next(pending, _DONE)
            if child is not _DONE:
                child_fields = _group_fields(child)
                stack.append((child_fields, iter(child_fields[3]), []))
                continue

            stack.pop()
            group = cls(id=fields[0], name=fields[1], path=fields[2], sub_groups=tuple(built))
            if not stack:
                return group
            stack[-1][2].append(group)


@dataclass(frozen=True)
class UserIdentity:
    """The part of a ``UserRepresentation`` the registry cares about."""
    username: str
    id: Optional[str] = None

    @classmethod
    def from_representation(cls, payload: Any) -> UserIdentity:
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"User representation must be an object, got {type(payload).__name__}")
        user_id = payload.get("id")
        return cls(
            username=_require_str(payload, "username", "User"),
            id=user_id if isinstance(user_id, str) else None,
        )
