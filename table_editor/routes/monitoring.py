"""Health and metrics endpoints."""

from fastapi import APIRouter, Depends

from table_editor.services.monitoring_service import get_health, get_metrics
from table_editor.services.session_store import EditorSessionStore, get_session_store

router = APIRouter(tags=["monitoring"])


@router.get("/health", summary="Health check")
def health(store: EditorSessionStore = Depends(get_session_store)):
    """Health check for load balancers and orchestration."""
    return get_health(store)


@router.get("/metrics", summary="Editing metrics")
def metrics(store: EditorSessionStore = Depends(get_session_store)):
    """
    Aggregate metrics over open tables: rules, columns, invalid cells,
    command results by status.
    """
    return get_metrics(store)
