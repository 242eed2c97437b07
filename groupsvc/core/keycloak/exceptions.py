"""Keycloak-specific exceptions for error handling."""


class KeycloakError(Exception):
    """Base exception for all Keycloak operations."""
    pass


class KeycloakAPIError(KeycloakError):
    """HTTP error from Keycloak Admin API.

    Attributes:
        status_code: HTTP status code
        message: Error message from response
        endpoint: API endpoint that failed
    """

    def __init__(self, status_code: int, message: str, endpoint: str):
        self.status_code = status_code
        self.message = message
        self.endpoint = endpoint
        super().__init__(f"[{status_code}] {endpoint}: {message}")

    @property
    def is_unauthorized(self) -> bool:
        """True when Keycloak rejected the bearer token itself."""
        return self.status_code == 401

    @property
    def is_conflict(self) -> bool:
        return self.status_code == 409


class KeycloakUnavailableError(KeycloakError):
    """Keycloak could not be reached (connection refused, timeout, DNS)."""

    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"{endpoint}: {reason}")


class UserNotFoundError(KeycloakError):
    """User lookup failed - username does not exist."""
    pass


class GroupNotFoundError(KeycloakError):
    """Group does not exist in realm."""
    pass
