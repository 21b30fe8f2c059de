"""HTTP surface over the reconciliation controller for presentation clients."""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.core.api_client import ProductivityAPIClient
from src.core.cache_client import local_cache
from src.core.identity import identity_provider, parse_bearer_token
from src.domain.activity import CompletionEvent, ParentType
from src.domain.item import Routine
from src.models.service_models import BatchResult, ConsistencyRecord, Notification, ProgressSnapshot
from src.services.consistency_service import ConsistencyFilter, filter_records
from src.services.notification_service import notifier
from src.services.reconciliation_service import ReconciliationController


logger = logging.getLogger(__name__)

_controller: ReconciliationController | None = None


async def bind_identity(authorization: str | None = Header(default=None)) -> None:
    """Scope remote calls to the caller's bearer token, when one is sent.

    Requests without a token keep the configured one.
    """
    token = parse_bearer_token(authorization)
    if token is None:
        return
    if identity_provider.verifies_tokens and await identity_provider.verify(token) is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid bearer token")
    identity_provider.sign_in(token)


router = APIRouter(prefix="/progress", tags=["progress"], dependencies=[Depends(bind_identity)])


def get_controller() -> ReconciliationController:
    """Process-wide controller, created on first use."""
    global _controller  # noqa: PLW0603
    if _controller is None:
        _controller = ReconciliationController(api=ProductivityAPIClient(), cache=local_cache, notifier=notifier)
    return _controller


class MarkDoneRequest(BaseModel):
    title: str = Field(default="", description="Item title shown in the timeline")


class MarkDoneResponse(BaseModel):
    recorded: bool
    event: CompletionEvent | None = None


class UndoResponse(BaseModel):
    undone: bool


@router.get("")
async def get_progress(controller: ReconciliationController = Depends(get_controller)) -> ProgressSnapshot:
    """Merged timeline with streak and consistency."""
    return await controller.refresh()


@router.get("/consistency")
async def get_consistency(
    view: ConsistencyFilter = Query(default=ConsistencyFilter.ALL, alias="filter"),
    controller: ReconciliationController = Depends(get_controller),
) -> list[ConsistencyRecord]:
    snapshot = await controller.refresh()
    return filter_records(snapshot.consistency, view)


@router.get("/routines")
async def get_routines(controller: ReconciliationController = Depends(get_controller)) -> list[Routine]:
    return await controller.load_routines()


@router.post("/history/clear", status_code=status.HTTP_202_ACCEPTED)
async def clear_history(controller: ReconciliationController = Depends(get_controller)) -> ProgressSnapshot:
    """Clear local history now; server cleanup continues in the background."""
    snapshot = await controller.clear_history()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to clear history",
        )
    return snapshot


@router.post("/sync")
async def sync_local_events(controller: ReconciliationController = Depends(get_controller)) -> BatchResult:
    return await controller.sync_local_events()


@router.get("/notifications")
async def get_notifications(
    limit: int = Query(default=20, ge=1, le=200),
    controller: ReconciliationController = Depends(get_controller),
) -> list[Notification]:
    return controller.notifier.recent(limit)


@router.delete("/routine/{item_id}/today")
async def undo_today(item_id: str, controller: ReconciliationController = Depends(get_controller)) -> UndoResponse:
    if controller.snapshot is None:
        await controller.refresh()
    return UndoResponse(undone=await controller.undo_today(item_id))


@router.post("/{parent_type}/{item_id}/done")
async def mark_done(
    parent_type: ParentType,
    item_id: str,
    body: MarkDoneRequest,
    controller: ReconciliationController = Depends(get_controller),
) -> MarkDoneResponse:
    event = await controller.mark_done(parent_type=parent_type, item_id=item_id, title=body.title)
    return MarkDoneResponse(recorded=event is not None, event=event)


@router.post("/{parent_type}/{item_id}/history/clear")
async def clear_item_history(
    parent_type: ParentType,
    item_id: str,
    controller: ReconciliationController = Depends(get_controller),
) -> ProgressSnapshot:
    return await controller.clear_item_history(parent_type=parent_type, item_id=item_id)


@router.delete("/{parent_type}/{item_id}")
async def delete_item(
    parent_type: ParentType,
    item_id: str,
    controller: ReconciliationController = Depends(get_controller),
) -> ProgressSnapshot:
    return await controller.delete_item(parent_type=parent_type, item_id=item_id)
