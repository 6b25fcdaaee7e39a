"""Process-wide registry of users and the group paths they belong to."""
from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Sequence

if TYPE_CHECKING:
    from .keycloak.models import Group, UserIdentity

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 30.0


class MergeError(RuntimeError):
    """The registry could not be updated."""
    pass


@dataclass
class UserRecord:
    """A user and the set of group paths observed for them."""
    username: str
    groups: set[str] = field(default_factory=set)


class Registry:
    """Username-keyed registry guarded by a single exclusive lock.

    All mutation happens while holding the lock. A merge pass takes the
    lock once, so concurrent readers see either none or all of a run's
    additions.
    """

    def __init__(self, lock_timeout: float = LOCK_TIMEOUT):
        self._users: dict[str, UserRecord] = {}
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            raise MergeError(f"Registry lock not acquired within {self._lock_timeout}s")
        try:
            yield
        finally:
            self._lock.release()

    def get_or_create(self, username: str) -> UserRecord:
        """Return the record for ``username``, creating an empty one if new."""
        with self._locked():
            record = self._get_or_create(username)
            return UserRecord(record.username, set(record.groups))

    def add_group_path(self, username: str, path: str) -> bool:
        """Add ``path`` to the user's groups.

        Returns:
            True if the path was new for that user
        """
        with self._locked():
            return self._add_group_path(username, path)

    def merge(self, memberships: Iterable[tuple[Group, Sequence[UserIdentity]]]) -> int:
        """Record every (group, members) pair under one lock acquisition.

        If the pass fails partway, its additions are rolled back before the
        lock is released.

        Returns:
            Number of (user, path) associations that were new

        Raises:
            MergeError: If the lock cannot be acquired
        """
        created: list[str] = []
        added: list[tuple[str, str]] = []
        with self._locked():
            try:
                for group, members in memberships:
                    for member in members:
                        logger.debug("group %s via %s user %s", group.name, group.path, member.username)
                        if member.username not in self._users:
                            created.append(member.username)
                        if self._add_group_path(member.username, group.path):
                            added.append((member.username, group.path))
            except BaseException:
                for username, path in added:
                    self._users[username].groups.discard(path)
                for username in created:
                    self._users.pop(username, None)
                raise
        return len(added)

    def get(self, username: str) -> Optional[UserRecord]:
        """Return a copy of the user's record, or None."""
        with self._locked():
            record = self._users.get(username)
            if record is None:
                return None
            return UserRecord(record.username, set(record.groups))

    def snapshot(self) -> dict[str, set[str]]:
        """Return a consistent copy of username -> group paths."""
        with self._locked():
            return {username: set(record.groups) for username, record in self._users.items()}

    def clear(self) -> None:
        with self._locked():
            self._users.clear()

    def __len__(self) -> int:
        with self._locked():
            return len(self._users)

    def __contains__(self, username: object) -> bool:
        with self._locked():
            return username in self._users

    def _get_or_create(self, username: str) -> UserRecord:
        record = self._users.get(username)
        if record is None:
            record = UserRecord(username)
            self._users[username] = record
        return record

    def _add_group_path(self, username: str, path: str) -> bool:
        record = self._get_or_create(username)
        if path in record.groups:
            return False
        record.groups.add(path)
        return True
