"""Low-level HTTP client for Keycloak Admin API.

Handles authentication, token management, and HTTP operations.

Two authentication modes are supported:

- ``bearer``: the caller's own access token is forwarded as-is. Group
  operations run this way so Keycloak enforces the caller's realm permissions.
- ``service_account``: client credentials grant with automatic refresh. Used
  by the role-based authorizer to read role mappings.
"""
from __future__ import annotations
import os
import threading
from typing import Optional, Dict, Any
from datetime import datetime, timedelta

import requests

from .exceptions import KeycloakAPIError, KeycloakUnavailableError

REQUEST_TIMEOUT = 5


class KeycloakClient:
    """HTTP client for Keycloak Admin API with automatic token management.

    Usage:
        client = KeycloakClient("http://keycloak:8080")
        client.authenticate_service_account("demo", "automation-cli", "secret")
        response = client.get("/admin/realms/demo/users")

        caller = create_client_with_token("http://keycloak:8080", access_token)
        groups = caller.get("/admin/realms/demo/groups").json()
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = REQUEST_TIMEOUT):
        """Initialize Keycloak client.

        Args:
            base_url: Keycloak base URL (defaults to KEYCLOAK_URL env var)
            timeout: Per-request timeout in seconds
        """
        self.base_url = (base_url or os.environ.get("KEYCLOAK_URL", "http://keycloak:8080")).rstrip("/")
        self.timeout = timeout
        self._token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._auth_method: Optional[str] = None
        self._auth_params: Dict[str, Any] = {}
        # Shared across gunicorn threads; guards token fetch and refresh
        self._token_lock = threading.Lock()

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token)

    def use_bearer_token(self, token: str) -> None:
        """Forward a caller-supplied access token on every request (no refresh)."""
        self._auth_method = "bearer"
        self._auth_params = {}
        self._token = token
        self._token_expires_at = None

    def authenticate_service_account(self, auth_realm: str, client_id: str, client_secret: str) -> str:
        """Authenticate as service account and store credentials for auto-refresh.

        Args:
            auth_realm: Realm where service account client exists
            client_id: Service account client ID
            client_secret: Service account client secret

        Returns:
            Access token
        """
        with self._token_lock:
            self._auth_method = "service_account"
            self._auth_params = {
                "auth_realm": auth_realm,
                "client_id": client_id,
                "client_secret": client_secret,
            }
            token, expires_in = self._get_service_account_token(auth_realm, client_id, client_secret)
            self._token = token
            self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
            return token

    def _ensure_authenticated(self) -> str:
        """Return a valid token, refreshing the service-account token if necessary."""
        if not self._token:
            raise KeycloakAPIError(401, "Not authenticated - provide a bearer token or call authenticate_service_account first", "")

        if self._auth_method != "service_account":
            return self._token

        with self._token_lock:
            # Refresh if token expired or expiring soon (within 10 seconds)
            if self._token_expires_at is not None and datetime.now() >= self._token_expires_at - timedelta(seconds=10):
                token, expires_in = self._get_service_account_token(
                    self._auth_params["auth_realm"],
                    self._auth_params["client_id"],
                    self._auth_params["client_secret"],
                )
                self._token = token
                self._token_expires_at = datetime.now() + timedelta(seconds=expires_in)
            return self._token

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> requests.Response:
        """Execute GET request with automatic authentication.

        Raises:
            KeycloakAPIError: On HTTP error
            KeycloakUnavailableError: When Keycloak cannot be reached
        """
        return self._request(requests.get, path, params=params, **kwargs)

    def post(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        """Execute POST request with automatic authentication."""
        return self._request(requests.post, path, json=json, **kwargs)

    def put(self, path: str, json: Optional[Any] = None, **kwargs) -> requests.Response:
        """Execute PUT request with automatic authentication."""
        return self._request(requests.put, path, json=json, **kwargs)

    def _request(self, send, path: str, **kwargs) -> requests.Response:
        token = self._ensure_authenticated()
        url = f"{self.base_url}{path}"
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"

        try:
            resp = send(url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise KeycloakUnavailableError(url, str(exc)) from exc
        self._handle_error(resp)
        return resp

    def _get_service_account_token(self, auth_realm: str, client_id: str, client_secret: str) -> tuple[str, int]:
        """Fetch a service account token using client credentials flow."""
        url = f"{self.base_url}/realms/{auth_realm}/protocol/openid-connect/token"
        data = {
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
        }
        try:
            resp = requests.post(url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            raise KeycloakUnavailableError(url, str(exc)) from exc
        if resp.status_code != 200:
            raise KeycloakAPIError(resp.status_code, resp.text, url)
        payload = json_body(resp)
        # Conservative expiry when Keycloak omits expires_in
        return payload["access_token"], int(payload.get("expires_in", 60))

    def _handle_error(self, resp: requests.Response) -> None:
        """Centralized error handling for HTTP responses.

        Raises:
            KeycloakAPIError: If response status indicates error
        """
        if resp.status_code >= 400:
            raise KeycloakAPIError(resp.status_code, resp.text, resp.url)


def json_body(resp: requests.Response) -> Any:
    """Decode a successful response body.

    A proxy login page or truncated body answered with 2xx is reported like
    any other bad Keycloak response.

    Raises:
        KeycloakAPIError: If the body is not valid JSON
    """
    try:
        return resp.json()
    except ValueError as exc:
        raise KeycloakAPIError(resp.status_code, "Response body is not valid JSON", resp.url) from exc


def create_client_with_token(kc_url: str, token: str, timeout: float = REQUEST_TIMEOUT) -> KeycloakClient:
    """Create a KeycloakClient that forwards a pre-obtained access token.

    Args:
        kc_url: Keycloak base URL
        token: Caller's access token
        timeout: Per-request timeout in seconds

    Returns:
        KeycloakClient instance with token pre-set
    """
    client = KeycloakClient(kc_url, timeout=timeout)
    client.use_bearer_token(token)
    return client
