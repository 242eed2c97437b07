"""Core Business Logic Module

Group management logic, independent of the HTTP framework.

Module Structure:
    - keycloak/            : Keycloak Admin API client (directory collaborator)
    - group_operations.py  : Create / Get / Update / List pipelines
    - claims.py            : Bearer token claims and realm resolution
    - authz.py             : Fail-closed capability checks
    - capabilities.py      : Capability registry and per-operation requirements
    - group_transformer.py : Internal group <-> Keycloak group transformations
    - member_count.py      : Per-group member counting with default-to-zero
    - validators.py        : Create/update payload validation
    - errors.py            : Error taxonomy rendered by the API layer

Usage Pattern:
    Import explicitly when needed:
        from groupsvc.core.group_operations import GroupOperations
        from groupsvc.core.errors import GroupServiceError
"""
