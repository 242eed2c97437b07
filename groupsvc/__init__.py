"""Group management service (Keycloak-backed).

To use the Flask app:
    from groupsvc.flask_app import create_app

To use the group operations directly:
    from groupsvc.core.group_operations import GroupOperations
    from groupsvc.core.keycloak import GroupService
"""
# Note: We don't import flask_app by default to avoid Flask dependency
# for callers that only use groupsvc.core
