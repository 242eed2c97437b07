"""Keycloak group management operations."""
from __future__ import annotations
import logging
from typing import Optional
from urllib.parse import quote

from .client import REQUEST_TIMEOUT, create_client_with_token, json_body
from .exceptions import KeycloakAPIError

logger = logging.getLogger(__name__)

MEMBER_PAGE_SIZE = 100


class GroupService:
    """Directory collaborator for Keycloak groups.

    Every call runs with the caller's access token so that Keycloak applies the
    caller's own realm-management permissions. The service keeps no state
    besides the base URL.
    """

    def __init__(self, base_url: str, timeout: float = REQUEST_TIMEOUT):
        """Initialize group service.

        Args:
            base_url: Keycloak base URL (e.g. http://keycloak:8080)
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _client(self, token: str):
        return create_client_with_token(self.base_url, token, timeout=self.timeout)

    def get_groups(self, token: str, realm: str, search: Optional[str] = None, exact: bool = False) -> list[dict]:
        """List groups of a realm, optionally filtered by name.

        Args:
            token: Caller's access token
            realm: Realm name
            search: Name filter (substring match unless ``exact``)
            exact: Request an exact name match

        Returns:
            Group representations in the order Keycloak returned them
        """
        params = {}
        if search:
            params["search"] = search
            if exact:
                params["exact"] = "true"
        resp = self._client(token).get(f"/admin/realms/{realm}/groups", params=params or None)
        return json_body(resp) or []

    def get_group_by_path(self, token: str, realm: str, group_path: str) -> Optional[dict]:
        """Retrieve the full representation of a group by its path (e.g. '/qa-team').

        Returns:
            Group representation or None if Keycloak has no group at that path
        """
        path = group_path if group_path.startswith("/") else f"/{group_path}"
        try:
            resp = self._client(token).get(f"/admin/realms/{realm}/group-by-path{quote(path, safe='/')}")
        except KeycloakAPIError as exc:
            if exc.status_code == 404:
                return None
            raise
        return json_body(resp)

    def create_group(self, token: str, realm: str, group: dict) -> str:
        """Create a top-level group and return its ID.

        Keycloak answers 201 with a Location header ending in the new ID; when
        the header is absent the group is looked up by its path instead.

        Raises:
            KeycloakAPIError: 409 when a sibling group with that name exists
        """
        resp = self._client(token).post(f"/admin/realms/{realm}/groups", json=group)
        location = resp.headers.get("Location", "")
        group_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
        if group_id:
            return group_id

        created = self.get_group_by_path(token, realm, f"/{group['name']}")
        if not created or not created.get("id"):
            raise KeycloakAPIError(resp.status_code, "Created group could not be located", resp.url)
        logger.debug("Resolved id of group '%s' by path lookup", group["name"])
        return created["id"]

    def update_group(self, token: str, realm: str, group: dict) -> None:
        """Replace name and attributes of the group identified by ``group['id']``."""
        self._client(token).put(f"/admin/realms/{realm}/groups/{group['id']}", json=group)

    def get_group_members(self, token: str, realm: str, group_id: str) -> list[dict]:
        """Retrieve all direct members of a group.

        Keycloak pages this endpoint (100 members unless ``max`` is given), so
        pages are requested until a short one comes back.

        Returns:
            List of user representations
        """
        client = self._client(token)
        members: list[dict] = []
        while True:
            resp = client.get(
                f"/admin/realms/{realm}/groups/{group_id}/members",
                params={"briefRepresentation": "true", "first": len(members), "max": MEMBER_PAGE_SIZE},
            )
            page = json_body(resp) or []
            if not isinstance(page, list):
                raise KeycloakAPIError(resp.status_code, "Member listing is not a JSON array", resp.url)
            members.extend(page)
            if len(page) < MEMBER_PAGE_SIZE:
                return members
