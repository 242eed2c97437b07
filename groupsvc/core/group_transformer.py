"""Internal group <-> Keycloak group transformations.

Clients send a flat ``attributes`` map of strings plus a ``longName``;
Keycloak stores attributes as lists of strings. ``longName`` travels inside
the Keycloak attributes under a reserved key.

Usage:
    # Internal -> Keycloak
    kc_group = GroupTransformer.to_keycloak(group)

    # Keycloak -> responses
    detail = GroupTransformer.to_detail(kc_group, member_count=3)
    entry = GroupTransformer.to_list_entry(kc_group, member_count=3)
"""
from __future__ import annotations
from typing import Any, Dict, Optional

from .models import Group, GroupDetail, GroupListEntry

LONG_NAME_ATTRIBUTE = "longName"


class GroupTransformer:
    """Converts between client-facing group shapes and Keycloak representations."""

    @staticmethod
    def to_provider_attributes(attributes: Dict[str, str], long_name: str) -> Dict[str, list[str]]:
        """Wrap each value in a singleton list and set the reserved ``longName`` key.

        A client-supplied ``longName`` attribute is overwritten by ``long_name``.

        Example:
            >>> GroupTransformer.to_provider_attributes({"dept": "qa"}, "QA Team")
            {'dept': ['qa'], 'longName': ['QA Team']}
        """
        provider_attributes = {key: [value] for key, value in attributes.items()}
        provider_attributes[LONG_NAME_ATTRIBUTE] = [long_name]
        return provider_attributes

    @staticmethod
    def to_keycloak(group: Group, group_id: Optional[str] = None) -> Dict[str, Any]:
        """Build the Keycloak GroupRepresentation for create (no id) or update."""
        kc_group: Dict[str, Any] = {
            "name": group.short_name,
            "attributes": GroupTransformer.to_provider_attributes(group.attributes, group.long_name),
        }
        if group_id:
            kc_group["id"] = group_id
        return kc_group

    @staticmethod
    def to_detail(kc_group: Dict[str, Any], member_count: int) -> GroupDetail:
        """Project a full Keycloak group; attributes keep their list values."""
        return GroupDetail(
            id=kc_group.get("id"),
            name=kc_group.get("name"),
            path=kc_group.get("path"),
            sub_groups=kc_group.get("subGroups"),
            attributes=kc_group.get("attributes"),
            access=kc_group.get("access"),
            client_roles=kc_group.get("clientRoles"),
            realm_roles=kc_group.get("realmRoles"),
            member_count=member_count,
        )

    @staticmethod
    def to_list_entry(kc_group: Dict[str, Any], member_count: int) -> GroupListEntry:
        """Project a Keycloak group for bulk listing (path as short name)."""
        return GroupListEntry(
            short_name=kc_group.get("path"),
            long_name=kc_group.get("name"),
            member_count=member_count,
        )
