"""Registry merge semantics and locking."""
import itertools
import threading

import pytest

from gluebuddy.core.keycloak import Group, UserIdentity
from gluebuddy.core.state import MergeError, Registry


STAFF = Group("1", "Arch Linux Staff", "/Arch Linux Staff")
SUB = Group("2", "Sub", "/Arch Linux Staff/Sub")
CONTRIB = Group("3", "External Contributors", "/External Contributors")


def _members(*names):
    return [UserIdentity(name) for name in names]


PAIRS = [
    (STAFF, _members("alice", "bob")),
    (SUB, _members("alice")),
    (CONTRIB, _members("carol", "bob")),
]


def test_merge_creates_records_and_adds_paths(registry):
    added = registry.merge(PAIRS)

    assert added == 5
    assert registry.snapshot() == {
        "alice": {"/Arch Linux Staff", "/Arch Linux Staff/Sub"},
        "bob": {"/Arch Linux Staff", "/External Contributors"},
        "carol": {"/External Contributors"},
    }


def test_merging_same_pair_twice_is_idempotent(registry):
    registry.merge([(SUB, _members("alice"))])
    before = registry.snapshot()

    assert registry.merge([(SUB, _members("alice"))]) == 0
    assert registry.snapshot() == before


def test_merge_is_order_independent():
    snapshots = []
    for permutation in itertools.permutations(PAIRS):
        registry = Registry()
        registry.merge(permutation)
        snapshots.append(registry.snapshot())

    assert all(snapshot == snapshots[0] for snapshot in snapshots)


def test_merge_only_adds_paths(registry):
    registry.add_group_path("alice", "/Old Team")
    registry.merge([(SUB, _members("alice"))])

    assert registry.get("alice").groups == {"/Old Team", "/Arch Linux Staff/Sub"}


def test_failed_merge_is_rolled_back(registry):
    registry.merge([(STAFF, _members("alice"))])
    before = registry.snapshot()

    def pairs():
        yield SUB, _members("alice", "dave")
        raise RuntimeError("broken batch")

    with pytest.raises(RuntimeError, match="broken batch"):
        registry.merge(pairs())

    assert registry.snapshot() == before
    assert "dave" not in registry


def test_lock_is_released_after_failure(registry):
    def pairs():
        raise RuntimeError("boom")
        yield  # pragma: no cover

    with pytest.raises(RuntimeError):
        registry.merge(pairs())

    assert registry.merge([(STAFF, _members("alice"))]) == 1


def test_lock_timeout_raises_merge_error():
    registry = Registry(lock_timeout=0.05)
    registry._lock.acquire()
    try:
        with pytest.raises(MergeError):
            registry.merge([(STAFF, _members("alice"))])
    finally:
        registry._lock.release()
    assert "alice" not in registry


def test_get_or_create_and_get_return_copies(registry):
    record = registry.get_or_create("alice")
    record.groups.add("/Injected")

    assert registry.get("alice").groups == set()
    assert registry.get("nobody") is None
    assert len(registry) == 1


def test_clear_empties_registry(registry):
    registry.merge(PAIRS)
    registry.clear()
    assert registry.snapshot() == {}


def test_concurrent_merges_do_not_lose_updates(registry):
    groups = [Group(str(i), f"G{i}", f"/G{i}") for i in range(20)]
    threads = [
        threading.Thread(target=registry.merge, args=([(group, _members("alice", "bob"))],))
        for group in groups
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    expected = {group.path for group in groups}
    assert registry.snapshot() == {"alice": expected, "bob": expected}
