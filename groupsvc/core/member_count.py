"""Per-group member counts for Get and List responses.

Keycloak has no batch member-count endpoint, so counting costs one Admin API
call per group. A failed lookup degrades to a count of zero: a missing count
never fails the surrounding Get or List request.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence

from .keycloak import GroupService, KeycloakError, GroupNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountResult:
    """Either a member count or the error that prevented computing it."""
    value: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: int) -> int:
        return self.value if self.error is None else default


def count_members(provider: GroupService, token: str, realm: str, group_id: Optional[str]) -> CountResult:
    """Count direct members of one group without raising provider errors."""
    if not group_id:
        return CountResult(error=GroupNotFoundError("Group has no id"))
    try:
        members = provider.get_group_members(token, realm, group_id)
    except KeycloakError as exc:
        return CountResult(error=exc)
    return CountResult(value=len(members))


def member_count(provider: GroupService, token: str, realm: str, group_id: Optional[str]) -> int:
    """Member count with the default-to-zero policy applied."""
    result = count_members(provider, token, realm, group_id)
    if not result.ok:
        logger.warning("Member count unavailable for group %s in realm %s: %s", group_id, realm, result.error)
    return result.unwrap_or(0)


def member_counts(
    provider: GroupService,
    token: str,
    realm: str,
    group_ids: Sequence[Optional[str]],
    max_workers: int = 1,
) -> list[int]:
    """Member counts aligned index-by-index with ``group_ids``.

    With ``max_workers`` > 1 the lookups run on a thread pool; results still
    come back in input order.
    """
    if max_workers <= 1 or len(group_ids) <= 1:
        return [member_count(provider, token, realm, group_id) for group_id in group_ids]

    with ThreadPoolExecutor(max_workers=min(max_workers, len(group_ids))) as pool:
        return list(pool.map(lambda group_id: member_count(provider, token, realm, group_id), group_ids))
