# Overview: Request decorators that establish tenant context for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import BrewCoreError
from .services.tenant_service import require_tenant_context


def require_tenant(f):
    """
    Establish tenant context for the request.

    MULTI-TENANT: Sets g.tenant_context (a TenantContext) from the
    X-Tenant-Id header; X-User-Id, when present, becomes the actor recorded on
    ledger entries and timeline events.

    SECURITY: Returns 400 if the header is missing or malformed and 404 if the
    tenant is unknown or deactivated. Authentication happens upstream.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_header = request.headers.get("X-Tenant-Id")
        if not tenant_header:
            return jsonify({"error": "X-Tenant-Id header required"}), 400

        try:
            g.tenant_context = require_tenant_context(
                tenant_header,
                request.headers.get("X-User-Id"),
            )
        except BrewCoreError as exc:
            return jsonify(exc.to_dict()), exc.status_code

        return f(*args, **kwargs)

    return decorated_function


def json_errors(f):
    """
    Map core errors to JSON responses.

    BrewCoreError subclasses carry their own status code and payload.
    Anything else is logged with a traceback and reported as a bare 500.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except BrewCoreError as exc:
            return jsonify(exc.to_dict()), exc.status_code
        except Exception:
            current_app.logger.exception("Unhandled error in %s %s", request.method, request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
