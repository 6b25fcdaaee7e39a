"""Low-level HTTP client for Keycloak Admin API.

Handles authentication, token management, and HTTP operations.
"""
from __future__ import annotations
import logging
import threading
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import KeycloakAPIError, MalformedResponseError

REQUEST_TIMEOUT = 5
DEFAULT_TOKEN_LIFETIME = 60
TOKEN_REFRESH_MARGIN = 10

logger = logging.getLogger(__name__)


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Features:
    - Automatic token refresh when expired
    - Centralized error handling
    - Safe to share between worker threads

    Usage:
        client = KeycloakClient("https://keycloak.example.org")
        client.authenticate_admin("admin", "password")
        groups = client.get_json("/admin/realms/staff/groups")
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_params: Dict[str, Any] = {}
        self._token_lock = threading.Lock()

    def authenticate_admin(self, username: str, password: str, realm: str = "master") -> str:
        """Authenticate as admin user and store credentials for auto-refresh.

        Args:
            username: Admin username
            password: Admin password
            realm: Authentication realm (default: master)

        Returns:
            Access token

        Raises:
            KeycloakAPIError: If the token endpoint rejects the credentials
        """
        logger.info("acquire API token for keycloak %s using realm %s", self.base_url, realm)
        with self._token_lock:
            self._auth_params = {"username": username, "password": password, "realm": realm}
            self._refresh_token()
            return self._token

    def _ensure_authenticated(self) -> str:
        """Return a valid token, refreshing it if it is about to expire."""
        with self._token_lock:
            if not self._token or not self._token_expires_at:
                raise KeycloakAPIError(401, "Not authenticated - call authenticate_admin first", "")
            if datetime.now() >= self._token_expires_at - timedelta(seconds=TOKEN_REFRESH_MARGIN):
                logger.debug("Refreshing Keycloak admin token")
                self._refresh_token()
            return self._token

    def _refresh_token(self) -> None:
        payload = self._get_admin_token(
            self._auth_params["username"],
            self._auth_params["password"],
            self._auth_params["realm"],
        )
        lifetime = payload.get("expires_in") or DEFAULT_TOKEN_LIFETIME
        try:
            lifetime = int(lifetime)
        except (TypeError, ValueError):
            raise MalformedResponseError(f"Token response has invalid expires_in: {lifetime!r}") from None
        self._token = payload["access_token"]
        self._token_expires_at = datetime.now() + timedelta(seconds=lifetime)

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Args:
            path: API endpoint path (e.g., "/admin/realms/staff/groups")
            params: Query parameters
            **kwargs: Additional arguments for requests.get

        Returns:
            Response object

        Raises:
            KeycloakAPIError: On HTTP or transport error
        """
        token = self._ensure_authenticated()
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"

        try:
            resp = requests.get(url, params=params, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise KeycloakAPIError(0, str(exc), url) from exc
        self._handle_error(resp)
        return resp

    def get_json(self, path: str, params: Optional[Dict] = None) -> Any:
        """Execute GET request and decode the JSON body.

        Raises:
            KeycloakAPIError: On HTTP or transport error
            MalformedResponseError: If the body is not valid JSON
        """
        resp = self.get(path, params=params)
        try:
            return resp.json()
        except (ValueError, RecursionError) as exc:
            raise MalformedResponseError(f"{path}: response is not valid JSON") from exc

    def _get_admin_token(self, username: str, password: str, realm: str = "master") -> dict:
        """Obtain an admin token via direct access grant."""
        url = f"{self.base_url}/realms/{realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "password",
            "client_id": "admin-cli",
            "username": username,
            "password": password,
        }
        try:
            resp = requests.post(url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise KeycloakAPIError(0, str(exc), url) from exc
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{url}: token response is not valid JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("access_token"), str) or not payload["access_token"]:
            raise MalformedResponseError(f"{url}: token response has no access_token")
        return payload

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Args:
            resp: Response object to check

        Raises:
            KeycloakAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)
