"""Input validation for group payloads."""
from __future__ import annotations
from typing import Any

from .errors import ErrorMessage, ValidationFailed
from .models import Group

ERR_MISSING = "missing"
ERR_INVALID = "invalid"

REQUIRED_STRING_FIELDS = ("shortName", "longName")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_group_payload(payload: Any) -> list[ErrorMessage]:
    """Check a create/update body and collect every problem found.

    Args:
        payload: Decoded JSON body

    Returns:
        Error messages, empty when the payload is valid
    """
    if not isinstance(payload, dict):
        return [ErrorMessage(ERR_INVALID, None, "Request body must be a JSON object")]

    errors = []
    for name in REQUIRED_STRING_FIELDS:
        value = payload.get(name)
        if _is_blank(value):
            errors.append(ErrorMessage(ERR_MISSING, name, "non-empty"))
        elif not isinstance(value, str):
            errors.append(ErrorMessage(ERR_INVALID, name, "must be a string"))

    attributes = payload.get("attributes")
    if attributes is None or attributes == {}:
        errors.append(ErrorMessage(ERR_MISSING, "attributes", "non-empty"))
    elif not isinstance(attributes, dict):
        errors.append(ErrorMessage(ERR_INVALID, "attributes", "must be an object of string values"))
    else:
        for key, value in attributes.items():
            if not isinstance(value, str):
                errors.append(ErrorMessage(ERR_INVALID, f"attributes.{key}", "must be a string"))

    group_id = payload.get("id")
    if group_id is not None and not isinstance(group_id, str):
        errors.append(ErrorMessage(ERR_INVALID, "id", "must be a string"))

    return errors


def parse_group(payload: Any) -> Group:
    """Validate and convert a request body.

    Raises:
        ValidationFailed: Carrying every validation error, not just the first
    """
    errors = validate_group_payload(payload)
    if errors:
        raise ValidationFailed(errors)
    return Group.from_payload(payload)
