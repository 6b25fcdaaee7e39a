"""Keycloak-specific exceptions for error handling."""


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class DirectoryError(KeycloakError):
    """The directory could not deliver a usable answer.

    Covers expired or rejected credentials, network failures, malformed
    payloads and inconsistent group hierarchies. Fatal for the current
    gather run.
    """
    pass


class KeycloakAPIError(DirectoryError):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code (0 when no response was received)
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")


class MalformedResponseError(DirectoryError):
    """Response body is not JSON or lacks a required field."""
    pass


class GroupCycleError(DirectoryError):
    """A group appears among its own ancestors.

    Attributes:
        group_id: ID of the group that closes the cycle
        path: Path of the group where the cycle was detected
    """

    def __init__(self, group_id: str, path: str):
        self.group_id = group_id
        self.path = path
        super().__init__(f"Group {group_id} ({path}) is its own ancestor")
