"""
Tenant context: explicit tenant and actor identifiers for every core call.

WHY: The core never reads ambient request state. The HTTP adapter (or the CLI,
or a test) builds a TenantContext once and passes it as the first argument to
every service operation; every query then filters on ctx.tenant_id.

SECURITY INVARIANTS:
1. Rows owned by another tenant are reported exactly like missing rows
2. tenant_scoped() is the only way services build tenant-owned queries
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Tenant
from .concurrency import lock_for_update


@dataclass(frozen=True)
class TenantContext:
    tenant_id: int
    user_id: str | None = None

    @property
    def actor(self) -> str:
        return self.user_id or "system"


def require_tenant_context(tenant_id, user_id=None) -> TenantContext:
    """
    Validate the tenant exists and is active and build its context.

    Raises:
        ValidationError if tenant_id is not an integer
        NotFoundError if the tenant is missing or deactivated
    """
    try:
        tenant_id = int(tenant_id)
    except (TypeError, ValueError):
        raise ValidationError("tenant_id must be an integer")

    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None or not tenant.is_active:
        raise NotFoundError("Tenant not found")

    return TenantContext(tenant_id=tenant.id, user_id=str(user_id) if user_id else None)


def tenant_scoped(ctx: TenantContext, model):
    """Query for `model` restricted to the caller's tenant."""
    return db.session.query(model).filter(model.tenant_id == ctx.tenant_id)


def get_owned(ctx: TenantContext, model, entity_id, *, label: str | None = None, lock: bool = False):
    """
    Load one tenant-owned row by id or raise NotFoundError.

    Cross-tenant ids produce the same error as unknown ids.
    """
    query = tenant_scoped(ctx, model).filter(model.id == entity_id)
    if lock:
        query = lock_for_update(query)
    obj = query.first()
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} {entity_id} not found")
    return obj
