"""Transient request/response shapes. Nothing here is persisted."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class Group:
    """Group as sent by clients on create and update."""
    short_name: str
    long_name: str
    attributes: dict[str, str] = field(default_factory=dict)
    id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Group":
        """Build from an already validated JSON body."""
        return cls(
            short_name=payload["shortName"],
            long_name=payload["longName"],
            attributes=dict(payload["attributes"]),
            id=payload.get("id"),
        )


@dataclass(frozen=True)
class Claims:
    issuer: str
    preferred_username: str


@dataclass(frozen=True)
class AuthorizationRequest:
    user: str
    capabilities_needed: tuple[str, ...]


@dataclass(frozen=True)
class RequestContext:
    """Outcome of the shared authenticate/authorize prefix."""
    token: str
    username: str
    realm: str


@dataclass
class GroupListEntry:
    short_name: Optional[str]
    long_name: Optional[str]
    member_count: int = 0

    def to_dict(self) -> dict:
        return {
            "shortName": self.short_name,
            "longName": self.long_name,
            "memberCount": self.member_count,
        }


@dataclass
class GroupDetail:
    id: Optional[str] = None
    name: Optional[str] = None
    path: Optional[str] = None
    sub_groups: Optional[list[dict]] = None
    attributes: Optional[dict[str, list[str]]] = None
    access: Optional[dict[str, bool]] = None
    client_roles: Optional[dict[str, list[str]]] = None
    realm_roles: Optional[list[str]] = None
    member_count: int = 0

    def to_dict(self) -> dict:
        """Serialize with Keycloak's field names; unset fields are omitted."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "path": self.path,
            "subGroups": self.sub_groups,
            "attributes": self.attributes,
            "access": self.access,
            "clientRoles": self.client_roles,
            "realmRoles": self.realm_roles,
        }
        data = {key: value for key, value in data.items() if value is not None}
        data["memberCount"] = self.member_count
        return data
