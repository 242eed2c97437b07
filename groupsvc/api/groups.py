"""Group management endpoints.

This module is thin transport glue: it reads the Authorization header, the
JSON body or query string, delegates to ``GroupOperations`` and wraps the
outcome in the response envelope.

Routes:
    POST /group                 Create (JSON body)
    PUT  /group                 Update (JSON body)
    GET  /group?shortName=...   Get one group with its member count
    GET  /groups                List all groups of the caller's realm
"""

from __future__ import annotations
import logging
from flask import Blueprint, request, jsonify, current_app, Response, abort

from groupsvc.core.errors import (
    DependencyUnavailable,
    ErrorMessage,
    GroupServiceError,
    UnsupportedMediaType,
    ValidationFailed,
)
from groupsvc.core.group_operations import GroupOperations

bp = Blueprint("groups", __name__)

EXTENSION_KEY = "group_operations"
SUCCESS_STATUS = "success"

logger = logging.getLogger(__name__)


def get_group_operations() -> GroupOperations:
    """Return the operations handle wired in by ``create_app``.

    Raises:
        DependencyUnavailable: The app was built without a directory provider
    """
    operations = current_app.extensions.get(EXTENSION_KEY)
    if operations is None:
        logger.error("Group operations not registered on the application")
        raise DependencyUnavailable("Directory provider not configured")
    return operations


def success_response(data=None, status: int = 200) -> tuple[Response, int]:
    """Wrap a payload in the success envelope."""
    return jsonify({"status": SUCCESS_STATUS, "data": data, "messages": []}), status


def _json_body():
    """Decode the request body, reporting bad content type or syntax."""
    max_size = current_app.config.get("MAX_CONTENT_LENGTH")
    if max_size and request.content_length and request.content_length > max_size:
        abort(413, description=f"Request payload exceeds {max_size} bytes")

    content_type = request.content_type or ""
    if not content_type.startswith("application/json"):
        raise UnsupportedMediaType("Content-Type must be application/json", field="Content-Type")

    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationFailed([ErrorMessage("invalid_json", None, "Request body is not valid JSON")])
    return payload


@bp.errorhandler(GroupServiceError)
def handle_group_error(error: GroupServiceError):
    """Render any GroupServiceError as the error envelope."""
    return jsonify(error.to_dict()), error.status


@bp.after_request
def add_correlation_id(response):
    """Echo the correlation ID for tracing."""
    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        response.headers["X-Correlation-Id"] = correlation_id
    return response


@bp.route("/group", methods=["POST"])
def create_group():
    """Create a group and return its generated ID.

    Returns:
        201 Created with the new group ID as data
    """
    operations = get_group_operations()
    group_id = operations.create_group(request.headers.get("Authorization"), _json_body)
    return success_response(group_id, 201)


@bp.route("/group", methods=["PUT"])
def update_group():
    """Update the group named by the body's shortName.

    Returns:
        200 OK with no data
    """
    operations = get_group_operations()
    operations.update_group(request.headers.get("Authorization"), _json_body)
    return success_response()


@bp.route("/group", methods=["GET"])
def get_group():
    """Return one group with its member count."""
    operations = get_group_operations()
    detail = operations.get_group(request.headers.get("Authorization"), request.args.get("shortName", ""))
    return success_response(detail.to_dict())


@bp.route("/groups", methods=["GET"])
def list_groups():
    """List all groups of the caller's realm in Keycloak order."""
    operations = get_group_operations()
    entries = operations.list_groups(request.headers.get("Authorization"))
    return success_response({"groups": [entry.to_dict() for entry in entries]})
