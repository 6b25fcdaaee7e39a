"""Gather Keycloak group memberships into a shared user registry."""

__version__ = "0.1.0"
