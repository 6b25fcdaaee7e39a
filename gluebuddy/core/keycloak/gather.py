"""Gather Keycloak group memberships into the user registry.

One ``gather()`` call lists the realm's groups, resolves the configured
root groups into their full subgroup trees, queries every group's members
concurrently and merges the result into the registry in a single locked
pass. Any directory failure aborts the run before the merge.
"""
from __future__ import annotations
import asyncio
import enum
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Optional, Sequence

from ...config.settings import DEFAULT_MAX_CONCURRENCY, ConfigurationError, Settings
from ..state import Registry
from .client import KeycloakClient
from .groups import GroupService, resolve_group_tree
from .models import Group, UserIdentity

logger = logging.getLogger(__name__)


class GatherPhase(enum.Enum):
    """Where a gather run currently is; FAILED ends a run early."""

    IDLE = "idle"
    LISTING_GROUPS = "listing-groups"
    RESOLVING_TREE = "resolving-tree"
    FETCHING_MEMBERS = "fetching-members"
    MERGING = "merging"
    FAILED = "failed"


async def fetch_memberships(
    service: GroupService,
    realm: str,
    groups: Sequence[Group],
    executor: Optional[Executor] = None,
) -> list[tuple[Group, list[UserIdentity]]]:
    """Query the members of every group concurrently.

    Each query runs on ``executor``. The first failure is raised and the
    queries that have not started yet are cancelled.
    """
    loop = asyncio.get_running_loop()

    async def fetch(group: Group) -> tuple[Group, list[UserIdentity]]:
        members = await loop.run_in_executor(executor, service.list_group_members, realm, group.id)
        return group, members

    tasks = [asyncio.ensure_future(fetch(group)) for group in groups]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        raise


class KeycloakGatherer:
    """Collects the memberships of a realm's root groups into a registry."""

    def __init__(
        self,
        service: GroupService,
        registry: Registry,
        realm: str,
        root_groups: Sequence[str],
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        if not realm:
            raise ConfigurationError("Keycloak realm is not configured")
        if not root_groups:
            raise ConfigurationError("No root groups configured")
        if max_concurrency < 1:
            raise ConfigurationError(f"max_concurrency must be positive, got {max_concurrency}")
        self.service = service
        self.registry = registry
        self.realm = realm
        self.root_groups = list(root_groups)
        self.max_concurrency = max_concurrency
        self.phase = GatherPhase.IDLE

    @classmethod
    def from_settings(cls, settings: Settings, registry: Registry) -> KeycloakGatherer:
        """Authenticate against Keycloak and build a gatherer.

        Raises:
            DirectoryError: If the admin token cannot be acquired
        """
        client = KeycloakClient(settings.keycloak_url, timeout=settings.request_timeout)
        client.authenticate_admin(
            settings.keycloak_username,
            settings.keycloak_password,
            settings.keycloak_auth_realm,
        )
        return cls(
            GroupService(client),
            registry,
            settings.keycloak_realm,
            settings.root_groups,
            max_concurrency=settings.max_concurrency,
        )

    def _enter(self, phase: GatherPhase) -> None:
        logger.debug("gather %s: %s -> %s", self.realm, self.phase.value, phase.value)
        self.phase = phase

    async def gather(self) -> None:
        """Run one list, resolve, fetch and merge pass.

        Raises:
            DirectoryError: If any directory call fails; the registry is untouched
            MergeError: If the registry lock cannot be acquired
        """
        logger.info("Gathering Keycloak state")
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=self.max_concurrency, thread_name_prefix="keycloak")
        try:
            self._enter(GatherPhase.LISTING_GROUPS)
            all_groups = await loop.run_in_executor(executor, self.service.list_top_level_groups, self.realm)

            self._enter(GatherPhase.RESOLVING_TREE)
            groups = resolve_group_tree(all_groups, self.root_groups)

            self._enter(GatherPhase.FETCHING_MEMBERS)
            memberships = await fetch_memberships(self.service, self.realm, groups, executor)

            self._enter(GatherPhase.MERGING)
            # Registry lock waits happen off the loop thread
            added = await loop.run_in_executor(executor, self.registry.merge, memberships)
        except BaseException:
            self._enter(GatherPhase.FAILED)
            raise
        finally:
            # In-flight siblings of a failed fetch are abandoned, not awaited.
            executor.shutdown(wait=False, cancel_futures=True)

        logger.info(
            "Gathered %d groups of realm %s, %d new memberships",
            len(groups), self.realm, added,
        )
        self._enter(GatherPhase.IDLE)
