"""Keycloak group listing and subgroup tree resolution."""
from __future__ import annotations
import logging
from typing import Iterable, Sequence

from .client import KeycloakClient
from .exceptions import GroupCycleError, MalformedResponseError
from .models import Group, UserIdentity

logger = logging.getLogger(__name__)


class GroupService:
    """Read-only access to Keycloak groups and their members."""

    def __init__(self, client: KeycloakClient):
        """Initialize group service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def list_top_level_groups(self, realm: str) -> list[Group]:
        """Retrieve the top-level groups of a realm, subgroups included.

        Args:
            realm: Realm name

        Returns:
            Parsed groups in the order Keycloak returned them

        Raises:
            DirectoryError: On HTTP failure or malformed payload
        """
        payload = self.client.get_json(f"/admin/realms/{realm}/groups")
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise MalformedResponseError(f"Group listing for realm {realm} is not a list")
        return [Group.from_representation(item) for item in payload]

    def list_group_members(self, realm: str, group_id: str) -> list[UserIdentity]:
        """Retrieve the direct members of a group.

        Args:
            realm: Realm name
            group_id: Group ID

        Returns:
            Member identities as returned by a single listing call

        Raises:
            DirectoryError: On HTTP failure or malformed payload
        """
        payload = self.client.get_json(f"/admin/realms/{realm}/groups/{group_id}/members")
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise MalformedResponseError(f"Member listing for group {group_id} is not a list")
        return [UserIdentity.from_representation(item) for item in payload]


def resolve_group_tree(groups: Iterable[Group], root_names: Sequence[str]) -> list[Group]:
    """Flatten the subtrees of the configured root groups.

    Roots are matched by exact name among the top-level ``groups``. Each
    root is followed by all of its descendants in pre-order, at any depth.
    A group is emitted once even if it is reachable twice.

    Args:
        groups: Top-level groups of the realm
        root_names: Names of the root groups to include

    Returns:
        Roots and descendants, ready for membership lookup

    Raises:
        GroupCycleError: If a group is listed beneath itself
    """
    wanted = set(root_names)
    roots = [group for group in groups if group.name in wanted]

    found = {group.name for group in roots}
    for name in root_names:
        if name not in found:
            logger.info("root group %s not found in directory, skipping", name)

    resolved: list[Group] = []
    seen: set[str] = set()
    for root in roots:
        logger.info("collect members of group %s via %s", root.name, root.path)
        # (group, ids of its ancestors)
        stack: list[tuple[Group, frozenset[str]]] = [(root, frozenset())]
        while stack:
            group, ancestors = stack.pop()
            if group.id in ancestors:
                raise GroupCycleError(group.id, group.path)
            if group.id in seen:
                logger.debug("group %s via %s already resolved", group.name, group.path)
                continue
            seen.add(group.id)
            resolved.append(group)
            if group is not root:
                logger.info("collect members of sub group %s via %s", group.name, group.path)

            lineage = ancestors | {group.id}
            for child in reversed(group.sub_groups):
                stack.append((child, lineage))

    return resolved
