"""Audit trail read endpoints.

Every listing accepts pageNumber, pageSize, orderBy and fields, answers with
{"value": [...shaped records], "links": [...]} and puts the pagination
metadata in the X-Pagination header.
"""

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response

from adms.api.deps import get_audit_repository, get_resource_parameters
from adms.core.logging import get_logger
from adms.query.pagination import ResourceParameters, create_links
from adms.repositories.audit import AuditDirection, AuditKind, AuditTrailRepository

PAGINATION_HEADER = "X-Pagination"

logger = get_logger(__name__)

router = APIRouter(tags=["audits"])


async def _audit_listing(
    repo: AuditTrailRepository,
    kind: AuditKind,
    subject_id: uuid.UUID,
    parameters: ResourceParameters,
    request: Request,
    response: Response,
) -> dict[str, Any]:
    shaped = await repo.query_audits_shaped(kind, subject_id, parameters)

    response.headers[PAGINATION_HEADER] = shaped.page.metadata().model_dump_json(by_alias=True)
    logger.debug(
        "Served audit listing",
        kind=kind.name,
        subject_id=str(subject_id),
        returned=len(shaped.items),
        total_count=shaped.page.total_count,
    )
    return {
        "value": shaped.items,
        "links": create_links(request.url, parameters, shaped.page),
    }


@router.get("/matters/{matter_id}/audits")
async def get_matter_audits(
    matter_id: uuid.UUID,
    request: Request,
    response: Response,
    parameters: ResourceParameters = Depends(get_resource_parameters),
    repo: AuditTrailRepository = Depends(get_audit_repository),
) -> dict[str, Any]:
    """Activity history of a matter."""
    return await _audit_listing(repo, AuditKind.MATTER, matter_id, parameters, request, response)


@router.get("/matters/{matter_id}/transfers")
async def get_matter_transfers(
    matter_id: uuid.UUID,
    request: Request,
    response: Response,
    direction: str = Query(...),
    parameters: ResourceParameters = Depends(get_resource_parameters),
    repo: AuditTrailRepository = Depends(get_audit_repository),
) -> dict[str, Any]:
    """Documents moved or copied out of ("from") or into ("to") a matter."""
    kind = AuditDirection.parse(direction).matter_kind
    return await _audit_listing(repo, kind, matter_id, parameters, request, response)


@router.get("/documents/{document_id}/audits")
async def get_document_audits(
    document_id: uuid.UUID,
    request: Request,
    response: Response,
    parameters: ResourceParameters = Depends(get_resource_parameters),
    repo: AuditTrailRepository = Depends(get_audit_repository),
) -> dict[str, Any]:
    """Activity history of a document."""
    return await _audit_listing(repo, AuditKind.DOCUMENT, document_id, parameters, request, response)


@router.get("/documents/{document_id}/transfers")
async def get_document_transfers(
    document_id: uuid.UUID,
    request: Request,
    response: Response,
    direction: str = Query(...),
    parameters: ResourceParameters = Depends(get_resource_parameters),
    repo: AuditTrailRepository = Depends(get_audit_repository),
) -> dict[str, Any]:
    """Moves and copies of a document, seen from the origin ("from") or destination ("to") matter."""
    kind = AuditDirection.parse(direction).kind
    return await _audit_listing(repo, kind, document_id, parameters, request, response)


@router.get("/revisions/{revision_id}/audits")
async def get_revision_audits(
    revision_id: uuid.UUID,
    request: Request,
    response: Response,
    parameters: ResourceParameters = Depends(get_resource_parameters),
    repo: AuditTrailRepository = Depends(get_audit_repository),
) -> dict[str, Any]:
    """Activity history of a revision."""
    return await _audit_listing(repo, AuditKind.REVISION, revision_id, parameters, request, response)
