"""Capability registry for group operations.

Capabilities form a closed set. Each operation declares the capabilities a
caller may hold to run it (holding any one of them is enough). The mapping is
checked once at application start so a typo fails the boot instead of silently
denying every request.
"""
from __future__ import annotations
from enum import Enum
from typing import Iterable, Mapping


class Capability(str, Enum):
    GROUP_CREATE = "GroupCreate"
    GROUP_UPDATE = "GroupUpdate"
    DEVELOPER = "developer"
    ADMIN = "admin"


class Operation(str, Enum):
    CREATE = "group_create"
    UPDATE = "group_update"
    GET = "group_get"
    LIST = "group_list"


OPERATION_CAPABILITIES: dict[Operation, tuple[str, ...]] = {
    Operation.CREATE: ("GroupCreate",),
    Operation.UPDATE: ("GroupUpdate",),
    Operation.GET: ("developer", "admin"),
    Operation.LIST: ("developer", "admin"),
}


def parse_capabilities(names: Iterable[str]) -> tuple[Capability, ...]:
    """Resolve capability names against the registry.

    Raises:
        ValueError: If a name is not a registered capability
    """
    known = {capability.value: capability for capability in Capability}
    resolved = []
    for name in names:
        if name not in known:
            raise ValueError(f"Unknown capability '{name}'. Known: {', '.join(sorted(known))}")
        resolved.append(known[name])
    return tuple(resolved)


def validate_operation_capabilities(
    mapping: Mapping[Operation, Iterable[str]] = OPERATION_CAPABILITIES,
) -> dict[Operation, tuple[Capability, ...]]:
    """Validate that every operation requires at least one known capability.

    Returns:
        The mapping with capability names resolved to ``Capability`` members

    Raises:
        ValueError: On a missing operation, an empty list, or an unknown name
    """
    missing = [operation.value for operation in Operation if operation not in mapping]
    if missing:
        raise ValueError(f"No capabilities declared for: {', '.join(missing)}")

    validated = {}
    for operation, names in mapping.items():
        capabilities = parse_capabilities(names)
        if not capabilities:
            raise ValueError(f"Operation '{operation.value}' requires no capability")
        validated[operation] = capabilities
    return validated
