"""cm_config admin REST API — read the snapshot, patch one module at a time."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_config.application.store import ConfigStore
from src.cm_gateway.auth.dependencies import get_config_store, require_admin
from src.cm_identity.domain.models import Identity

router = APIRouter(prefix="/admin/settings", tags=["admin"])


@router.get("")
async def get_settings(
    admin: Annotated[Identity, Depends(require_admin)],
    store: Annotated[ConfigStore, Depends(get_config_store)],
    request: Request,
) -> ApiResponse:
    resp = success_response(store.snapshot().model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.put("/{module}")
async def update_settings(
    module: str,
    patch: Annotated[dict[str, Any], Body(...)],
    admin: Annotated[Identity, Depends(require_admin)],
    store: Annotated[ConfigStore, Depends(get_config_store)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    updated = await store.update_module(db, module, patch, admin.handle)
    resp = success_response(getattr(updated, module).model_dump(mode="json"))
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    resp.message = f"Module {module} updated"
    return resp
