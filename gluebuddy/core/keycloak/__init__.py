"""Keycloak Admin API access for gathering group memberships.

Architecture:
- client.py: HTTP client with authentication and auto-refresh
- models.py: Typed group and user representations
- groups.py: Group listing, member listing and subgroup tree resolution
- gather.py: Concurrent membership fetch and registry merge
- exceptions.py: Typed exceptions for error handling

Usage:
    from gluebuddy.core.keycloak import KeycloakClient, GroupService, KeycloakGatherer
    from gluebuddy.core.state import Registry

    client = KeycloakClient("https://keycloak.example.org")
    client.authenticate_admin("admin", "password")

    registry = Registry()
    gatherer = KeycloakGatherer(GroupService(client), registry, "staff", ["Arch Linux Staff"])
    asyncio.run(gatherer.gather())
"""
from .client import (
    KeycloakClient,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    KeycloakError,
    DirectoryError,
    KeycloakAPIError,
    MalformedResponseError,
    GroupCycleError,
)
from .models import (
    Group,
    UserIdentity,
)
from .groups import (
    GroupService,
    resolve_group_tree,
)
from .gather import (
    GatherPhase,
    KeycloakGatherer,
    fetch_memberships,
)

__all__ = [
    # Client
    "KeycloakClient",
    "REQUEST_TIMEOUT",

    # Exceptions
    "KeycloakError",
    "DirectoryError",
    "KeycloakAPIError",
    "MalformedResponseError",
    "GroupCycleError",

    # Models
    "Group",
    "UserIdentity",

    # Services
    "GroupService",
    "resolve_group_tree",
    "GatherPhase",
    "KeycloakGatherer",
    "fetch_memberships",
]
