"""API routes for the table editor."""

from fastapi import APIRouter

from table_editor.routes import monitoring, tables

api_router = APIRouter(prefix="/api", tags=["api"])

api_router.include_router(monitoring.router)
api_router.include_router(tables.router, prefix="/tables", tags=["tables"])
