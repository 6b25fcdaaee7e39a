"""Pytest shared fixtures for gather tests."""
import os
import pathlib
import sys
from typing import Optional

# Add project root to Python path
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
import requests

from gluebuddy.core.keycloak import Group, KeycloakAPIError, UserIdentity
from gluebuddy.core.state import Registry


# ─────────────────────────────────────────────────────────────────────────────
# Network Guard Rails
# ─────────────────────────────────────────────────────────────────────────────
@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    """
    Prevent unit tests from hitting a live Keycloak.

    Integration tests are explicitly marked with @pytest.mark.integration and
    are allowed to perform real HTTP calls by skipping this fixture.
    """
    if request.node.get_closest_marker("integration"):
        return

    def _stub_post(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP POST in unit test: {url}")

    def _stub_get(url, *args, **kwargs):
        raise RuntimeError(f"Unexpected HTTP GET in unit test: {url}")

    monkeypatch.setattr(requests, "post", _stub_post)
    monkeypatch.setattr(requests, "get", _stub_get)


@pytest.fixture(autouse=True)
def _clean_gluebuddy_env(monkeypatch):
    """Make sure every test starts without GLUEBUDDY_* configuration."""
    for name in list(os.environ):
        if name.startswith("GLUEBUDDY_"):
            monkeypatch.delenv(name, raising=False)


# ─────────────────────────────────────────────────────────────────────────────
# Directory Helpers
# ─────────────────────────────────────────────────────────────────────────────
def group_payload(name: str, parent_path: str = "", group_id: Optional[str] = None, children=()) -> dict:
    """Build a Keycloak GroupRepresentation with nested subGroups."""
    path = f"{parent_path}/{name}"
    return {
        "id": group_id or f"id-{path}",
        "name": name,
        "path": path,
        "subGroups": [child(path) if callable(child) else child for child in children],
    }


def subgroup(name: str, group_id: Optional[str] = None, children=()):
    """Deferred group_payload, resolved once the parent path is known."""
    return lambda parent_path: group_payload(name, parent_path, group_id, children)


class FakeGroupService:
    """In-memory stand-in for GroupService.

    Members are keyed by group ID. IDs listed in ``failing`` raise a
    KeycloakAPIError when their members are requested.
    """

    def __init__(self, groups: list[dict], members: Optional[dict] = None, failing=()):
        self.groups = groups
        self.members = members or {}
        self.failing = set(failing)
        self.list_calls = []
        self.member_calls = []

    def list_top_level_groups(self, realm: str) -> list[Group]:
        self.list_calls.append(realm)
        return [Group.from_representation(payload) for payload in self.groups]

    def list_group_members(self, realm: str, group_id: str) -> list[UserIdentity]:
        self.member_calls.append((realm, group_id))
        if group_id in self.failing:
            raise KeycloakAPIError(503, "unavailable", f"/admin/realms/{realm}/groups/{group_id}/members")
        return [UserIdentity(username) for username in self.members.get(group_id, [])]


@pytest.fixture()
def registry():
    return Registry()


@pytest.fixture()
def staff_directory():
    """Realm with one staff root holding a subgroup 'Sub' with alice."""
    groups = [
        group_payload("Arch Linux Staff", group_id="staff", children=[subgroup("Sub", group_id="sub")]),
    ]
    return FakeGroupService(groups, members={"sub": ["alice"]})


# ─────────────────────────────────────────────────────────────────────────────
# Pytest Configuration
# ─────────────────────────────────────────────────────────────────────────────
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires a running Keycloak)"
    )
