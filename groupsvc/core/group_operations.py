"""
Group Operations: Create, Get, Update and List

Every operation runs the same prefix before touching Keycloak:

    Authorization header -> bearer token -> claims (iss, preferred_username)
        -> realm -> capability check

then performs at most one Keycloak mutation (Create, Update) or a lookup
followed by member counting (Get, List). Any failure ends the request with a
``GroupServiceError``; nothing is retried and nothing is rolled back.

Architecture:
    Flask blueprint (/group, /groups) ──> GroupOperations ──┬──> Authorizer
                                                            └──> keycloak.GroupService ──> Keycloak
"""

from __future__ import annotations
import logging
from typing import Mapping, Optional

from .authz import Authorizer
from .capabilities import Capability, Operation, validate_operation_capabilities
from .claims import extract_bearer_token, extract_claims, resolve_realm, token_fingerprint
from .errors import (
    GroupAlreadyExists,
    GroupNotExist,
    GroupNotFound,
    GroupServiceError,
    MissingParameter,
    ProviderError,
    TokenVerificationFailed,
    Unauthorized,
    UserNotFound,
)
from .group_transformer import GroupTransformer
from .keycloak import GroupService, KeycloakAPIError, KeycloakError
from .member_count import member_count, member_counts
from .models import GroupDetail, GroupListEntry, RequestContext
from .validators import parse_group

logger = logging.getLogger(__name__)


def provider_error(exc: KeycloakError, action: str) -> GroupServiceError:
    """Map a Keycloak failure into the service's error taxonomy."""
    if isinstance(exc, KeycloakAPIError):
        if exc.is_unauthorized:
            return TokenVerificationFailed(f"Keycloak rejected the token while trying to {action}")
        return ProviderError(f"Keycloak returned {exc.status_code} while trying to {action}")
    return ProviderError(f"Keycloak unavailable while trying to {action}")


def find_group_named(groups: list[dict], name: str) -> Optional[dict]:
    """Return the group called ``name`` from a Keycloak search result.

    Search answers with top-level groups and nests matching subgroups under
    ``subGroups``; the tree is walked breadth-first so a top-level match wins.
    """
    pending = list(groups)
    while pending:
        candidate = pending.pop(0)
        if candidate.get("name") == name:
            return candidate
        pending.extend(candidate.get("subGroups") or [])
    return None


class GroupOperations:
    """Group use cases wired to a directory provider and an authorizer."""

    def __init__(
        self,
        provider: GroupService,
        authorizer: Authorizer,
        capabilities: Optional[Mapping[Operation, tuple[Capability, ...]]] = None,
        member_count_workers: int = 1,
    ):
        self.provider = provider
        self.authorizer = authorizer
        self.capabilities = dict(capabilities) if capabilities is not None else validate_operation_capabilities()
        self.member_count_workers = member_count_workers

    # ─────────────────────────────────────────────────────────────────────────
    # Shared prefix
    # ─────────────────────────────────────────────────────────────────────────

    def authenticate(self, authorization_header: Optional[str], operation: Operation) -> RequestContext:
        """Extract token and claims, resolve the realm, and authorize.

        Raises:
            TokenMissing, ClaimMissing, RealmNotFound, Unauthorized
        """
        token = extract_bearer_token(authorization_header)
        claims = extract_claims(token)
        realm = resolve_realm(claims.issuer)

        needed = [capability.value for capability in self.capabilities[operation]]
        if not self.authorizer.authorize(claims.preferred_username, needed):
            logger.info(
                "Denied %s | user=%s | needs any of %s | token_hash=%s",
                operation.value, claims.preferred_username, needed, token_fingerprint(token),
            )
            raise Unauthorized(f"Requires one of: {', '.join(needed)}")

        logger.debug("Authorized %s | user=%s | realm=%s", operation.value, claims.preferred_username, realm)
        return RequestContext(token=token, username=claims.preferred_username, realm=realm)

    # ─────────────────────────────────────────────────────────────────────────
    # Operations
    # ─────────────────────────────────────────────────────────────────────────

    def create_group(self, authorization_header: Optional[str], payload) -> str:
        """Create a group and return the id Keycloak generated.

        Args:
            authorization_header: Raw ``Authorization`` header value
            payload: Decoded JSON body, or a zero-argument callable producing
                it; a callable is only invoked once the caller is authorized

        Raises:
            ValidationFailed: Missing/empty shortName, longName or attributes
            GroupAlreadyExists: Keycloak answered 409
            ProviderError: Any other Keycloak failure
        """
        ctx = self.authenticate(authorization_header, Operation.CREATE)
        group = parse_group(payload() if callable(payload) else payload)

        try:
            group_id = self.provider.create_group(ctx.token, ctx.realm, GroupTransformer.to_keycloak(group))
        except KeycloakAPIError as exc:
            if exc.is_conflict:
                raise GroupAlreadyExists(f"Group '{group.short_name}' already exists", field="shortName") from exc
            raise provider_error(exc, "create the group") from exc
        except KeycloakError as exc:
            raise provider_error(exc, "create the group") from exc

        logger.info("Created group '%s' (id=%s) in realm %s by %s", group.short_name, group_id, ctx.realm, ctx.username)
        return group_id

    def update_group(self, authorization_header: Optional[str], payload) -> None:
        """Replace long name and attributes of the group named ``shortName``.

        Raises:
            ValidationFailed: Missing/empty shortName, longName or attributes
            GroupNotExist: No group with that name
            ProviderError: Keycloak failure on lookup or update
        """
        ctx = self.authenticate(authorization_header, Operation.UPDATE)
        group = parse_group(payload() if callable(payload) else payload)

        try:
            matches = self.provider.get_groups(ctx.token, ctx.realm, search=group.short_name, exact=True)
        except KeycloakError as exc:
            raise provider_error(exc, "look up the group") from exc
        existing = find_group_named(matches, group.short_name)
        if existing is None or not existing.get("id"):
            logger.info("Update of unknown group '%s' in realm %s", group.short_name, ctx.realm)
            raise GroupNotExist(f"Group '{group.short_name}' does not exist", field="shortName")

        try:
            self.provider.update_group(ctx.token, ctx.realm, GroupTransformer.to_keycloak(group, existing.get("id")))
        except KeycloakError as exc:
            raise provider_error(exc, "update the group") from exc

        logger.info("Updated group '%s' (id=%s) in realm %s by %s", group.short_name, existing.get("id"), ctx.realm, ctx.username)

    def get_group(self, authorization_header: Optional[str], short_name: Optional[str]) -> GroupDetail:
        """Return the first group matching ``short_name`` with its member count.

        Raises:
            MissingParameter: ``short_name`` empty
            GroupNotFound: No group matches
        """
        ctx = self.authenticate(authorization_header, Operation.GET)
        if not short_name or not short_name.strip():
            raise MissingParameter("non-empty", field="shortName")

        try:
            matches = self.provider.get_groups(ctx.token, ctx.realm, search=short_name)
        except KeycloakError as exc:
            raise provider_error(exc, "search groups") from exc
        if not matches:
            raise GroupNotFound(f"No group matches '{short_name}' in realm {ctx.realm}", field="shortName")

        # Search is a substring match; the first hit wins
        path = matches[0].get("path") or f"/{matches[0].get('name', short_name)}"
        try:
            kc_group = self.provider.get_group_by_path(ctx.token, ctx.realm, path)
        except KeycloakError as exc:
            raise provider_error(exc, "read the group") from exc
        if not kc_group:
            raise GroupNotFound(f"Group at path '{path}' disappeared", field="shortName")

        count = member_count(self.provider, ctx.token, ctx.realm, kc_group.get("id"))
        return GroupTransformer.to_detail(kc_group, count)

    def list_groups(self, authorization_header: Optional[str]) -> list[GroupListEntry]:
        """List every group of the caller's realm with member counts.

        Raises:
            TokenVerificationFailed: Keycloak rejected the caller's token
            UserNotFound: Any other listing failure, or no groups at all
        """
        ctx = self.authenticate(authorization_header, Operation.LIST)

        try:
            groups = self.provider.get_groups(ctx.token, ctx.realm)
        except KeycloakAPIError as exc:
            if exc.is_unauthorized:
                logger.info("Keycloak rejected token while listing realm %s", ctx.realm)
                raise TokenVerificationFailed("Keycloak rejected the token while listing groups", field="realm") from exc
            raise UserNotFound(f"Groups of realm {ctx.realm} unavailable", field="realm") from exc
        except KeycloakError as exc:
            logger.warning("Listing groups of realm %s failed: %s", ctx.realm, exc)
            raise UserNotFound(f"Groups of realm {ctx.realm} unavailable", field="realm") from exc
        if not groups:
            raise UserNotFound(f"No groups found in realm {ctx.realm}", field="realm")

        counts = member_counts(
            self.provider, ctx.token, ctx.realm,
            [group.get("id") for group in groups],
            max_workers=self.member_count_workers,
        )
        return [GroupTransformer.to_list_entry(group, count) for group, count in zip(groups, counts)]
