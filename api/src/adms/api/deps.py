"""FastAPI dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from adms.core.database import get_db
from adms.query.mapping import FieldMappingRegistry
from adms.query.pagination import ResourceParameters
from adms.query.registrations import get_registry
from adms.repositories.audit import AuditTrailRepository


def get_field_mappings(request: Request) -> FieldMappingRegistry:
    """Registry frozen at startup; falls back to the process-wide one."""
    registry = getattr(request.app.state, "field_mappings", None)
    return registry if registry is not None else get_registry()


def get_resource_parameters(
    page_number: int = Query(1, alias="pageNumber"),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    order_by: Optional[str] = Query(None, alias="orderBy"),
    fields: Optional[str] = Query(None),
) -> ResourceParameters:
    return ResourceParameters(
        page_number=page_number,
        page_size=page_size,
        order_by=order_by,
        fields=fields,
    )


def get_audit_repository(
    session: AsyncSession = Depends(get_db),
    registry: FieldMappingRegistry = Depends(get_field_mappings),
) -> AuditTrailRepository:
    return AuditTrailRepository(session, registry)
