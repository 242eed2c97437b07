"""Keycloak Admin API client library.

Architecture:
- client.py: HTTP client with bearer passthrough or service-account auto-refresh
- groups.py: Group lookups and mutations (the directory collaborator)
- users.py: User and role-mapping lookups (used by the authorizer)
- exceptions.py: Typed exceptions for error handling

Usage:
    from groupsvc.core.keycloak import GroupService

    groups = GroupService("http://keycloak:8080")
    found = groups.get_groups(access_token, "demo", search="qa-team")
"""
from .client import (
    KeycloakClient,
    create_client_with_token,
    REQUEST_TIMEOUT,
)
from .exceptions import (
    KeycloakError,
    KeycloakAPIError,
    KeycloakUnavailableError,
    UserNotFoundError,
    GroupNotFoundError,
)
from .groups import GroupService
from .users import UserService

__all__ = [
    # Client
    "KeycloakClient",
    "create_client_with_token",
    "REQUEST_TIMEOUT",

    # Exceptions
    "KeycloakError",
    "KeycloakAPIError",
    "KeycloakUnavailableError",
    "UserNotFoundError",
    "GroupNotFoundError",

    # Services
    "GroupService",
    "UserService",
]
