"""Keycloak user lookups used for authorization decisions."""
from __future__ import annotations
from typing import Optional

from .client import KeycloakClient, json_body
from .exceptions import UserNotFoundError


class UserService:
    """Read-only view of Keycloak users and their role mappings."""

    def __init__(self, client: KeycloakClient):
        """Initialize user service.

        Args:
            client: Authenticated Keycloak client
        """
        self.client = client

    def get_user_by_username(self, realm: str, username: str) -> Optional[dict]:
        """Return the user representation that exactly matches the username.

        Args:
            realm: Realm name
            username: Username to search for

        Returns:
            User representation or None if not found
        """
        resp = self.client.get(
            f"/admin/realms/{realm}/users",
            params={"username": username, "exact": "true"},
        )
        for user in json_body(resp) or []:
            if user.get("username") == username:
                return user
        return None

    def get_effective_realm_roles(self, realm: str, username: str) -> set[str]:
        """Return the names of all realm roles (direct and composite) held by a user.

        Raises:
            UserNotFoundError: If no user has that username
        """
        user = self.get_user_by_username(realm, username)
        if not user:
            raise UserNotFoundError(f"User '{username}' not found in realm '{realm}'")

        resp = self.client.get(f"/admin/realms/{realm}/users/{user['id']}/role-mappings/realm/composite")
        return {role["name"] for role in json_body(resp) or [] if role.get("name")}
