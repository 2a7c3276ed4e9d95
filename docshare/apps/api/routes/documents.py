from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from docshare.apps.api.deps import get_access_service, get_principal
from docshare.apps.api.errors import access_failure_exception
from docshare.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docshare.apps.api.response import SuccessEnvelope, success_response
from docshare.domain.access import parse_access_level
from docshare.domain.permissions import DocumentGroup, DocumentRecord, DocumentUser, Principal
from docshare.services.access import AccessResult, DocumentAccessService, effective_access


router = APIRouter(prefix="/documents", tags=["documents"], responses=DEFAULT_ERROR_RESPONSES)

AccessLabel = Literal["none", "readonly", "edit", "full"]


class DocumentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: str = Field(default="whiteboard", min_length=1, max_length=64)
    draft: bool = False
    group_ids: list[str] = Field(default_factory=list)

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [{"name": "Roadmap", "type": "whiteboard", "draft": False, "group_ids": ["product"]}]
        },
    }


class AccessUpdateRequest(BaseModel):
    access: AccessLabel

    model_config = {"extra": "forbid"}


class DocumentResponse(BaseModel):
    id: str
    name: str
    type: str
    owner: str
    created_at: str
    draft: bool
    default_access: AccessLabel
    # Caller's resolved level; lets clients hide controls they cannot use.
    access: AccessLabel
    users: dict[str, AccessLabel]
    groups: dict[str, AccessLabel]


class DocumentListResponse(BaseModel):
    items: list[DocumentResponse]
    next_cursor: str | None


class AccessResponse(BaseModel):
    document_id: str
    access: AccessLabel


class DocumentUserResponse(BaseModel):
    id: str
    name: str
    access: AccessLabel
    is_owner: bool
    is_current_user: bool


class DocumentGroupResponse(BaseModel):
    id: str
    name: str
    access: AccessLabel


def _unwrap(result: AccessResult):
    if not result.ok:
        raise access_failure_exception(result.error)
    return result.value


def _document_payload(document: DocumentRecord, principal: Principal) -> DocumentResponse:
    state = document.state
    return DocumentResponse(
        id=document.id,
        name=document.name,
        type=document.document_type,
        owner=document.owner,
        created_at=document.created_at.isoformat(),
        draft=document.is_draft,
        default_access=state.default_access.label,
        access=effective_access(state, principal).label,
        users={user_id: level.label for user_id, level in state.user_grants.items()},
        groups={group_id: level.label for group_id, level in state.group_grants.items()},
    )


def _user_payload(row: DocumentUser) -> DocumentUserResponse:
    return DocumentUserResponse(
        id=row.id,
        name=row.name,
        access=row.access.label,
        is_owner=row.is_owner,
        is_current_user=row.is_current_user,
    )


def _group_payload(row: DocumentGroup) -> DocumentGroupResponse:
    return DocumentGroupResponse(id=row.id, name=row.name, access=row.access.label)


@router.post("", status_code=201, response_model=SuccessEnvelope[DocumentResponse])
async def create_document(
    payload: DocumentCreateRequest,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(
        await service.create_document(
            principal,
            name=payload.name,
            document_type=payload.type,
            draft=payload.draft,
            group_ids=payload.group_ids,
        )
    )
    return success_response(request=request, data=_document_payload(document, principal))


@router.get("", response_model=SuccessEnvelope[DocumentListResponse])
async def list_documents(
    request: Request,
    type: str | None = Query(default=None, max_length=64),
    drafts: bool = Query(default=False),
    limit: int | None = Query(default=None, ge=1),
    cursor: str | None = Query(default=None),
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    page = _unwrap(
        await service.list_documents(
            principal,
            document_type=type,
            drafts=drafts,
            limit=limit,
            cursor=cursor,
        )
    )
    data = DocumentListResponse(
        items=[_document_payload(document, principal) for document in page.documents],
        next_cursor=page.next_cursor,
    )
    return success_response(request=request, data=data)


@router.get("/{document_id}", response_model=SuccessEnvelope[DocumentResponse])
async def get_document(
    document_id: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(await service.get_document(principal, document_id))
    return success_response(request=request, data=_document_payload(document, principal))


@router.get("/{document_id}/access", response_model=SuccessEnvelope[AccessResponse])
async def get_access(
    document_id: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    level = _unwrap(await service.get_access(principal, document_id))
    data = AccessResponse(document_id=document_id, access=level.label)
    return success_response(request=request, data=data)


@router.get("/{document_id}/users", response_model=SuccessEnvelope[list[DocumentUserResponse]])
async def list_document_users(
    document_id: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    rows = _unwrap(await service.list_document_users(principal, document_id))
    return success_response(request=request, data=[_user_payload(row) for row in rows])


@router.get("/{document_id}/groups", response_model=SuccessEnvelope[list[DocumentGroupResponse]])
async def list_document_groups(
    document_id: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    rows = _unwrap(await service.list_document_groups(principal, document_id))
    return success_response(request=request, data=[_group_payload(row) for row in rows])


@router.put("/{document_id}/users/{user_id}", response_model=SuccessEnvelope[DocumentResponse])
async def grant_user(
    document_id: str,
    user_id: str,
    payload: AccessUpdateRequest,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(
        await service.grant_user(principal, document_id, user_id, parse_access_level(payload.access))
    )
    return success_response(request=request, data=_document_payload(document, principal))


@router.delete("/{document_id}/users/{user_id}", response_model=SuccessEnvelope[DocumentResponse])
async def revoke_user(
    document_id: str,
    user_id: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(await service.revoke_user(principal, document_id, user_id))
    return success_response(request=request, data=_document_payload(document, principal))


@router.put("/{document_id}/groups/{group_id}", response_model=SuccessEnvelope[DocumentResponse])
async def grant_group(
    document_id: str,
    group_id: str,
    payload: AccessUpdateRequest,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(
        await service.grant_group(principal, document_id, group_id, parse_access_level(payload.access))
    )
    return success_response(request=request, data=_document_payload(document, principal))


@router.delete("/{document_id}/groups/{group_id}", response_model=SuccessEnvelope[DocumentResponse])
async def revoke_group(
    document_id: str,
    group_id: str,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(await service.revoke_group(principal, document_id, group_id))
    return success_response(request=request, data=_document_payload(document, principal))


@router.put("/{document_id}/default-access", response_model=SuccessEnvelope[DocumentResponse])
async def set_default_access(
    document_id: str,
    payload: AccessUpdateRequest,
    request: Request,
    principal: Principal | None = Depends(get_principal),
    service: DocumentAccessService = Depends(get_access_service),
) -> dict:
    document = _unwrap(
        await service.set_default_access(principal, document_id, parse_access_level(payload.access))
    )
    return success_response(request=request, data=_document_payload(document, principal))
