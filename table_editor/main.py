"""
Decision table editor FastAPI application entrypoint.

Run with: uvicorn table_editor.main:app --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from table_editor.routes import api_router
from table_editor.utils.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup."""
    configure_logging()
    yield
    # Shutdown: sessions are in memory only


app = FastAPI(
    title="Decision Table Editor API",
    description="""Editing core for DMN decision tables.

Open a table document with `POST /api/tables`, then send commands to
`POST /api/tables/{id}/commands`. Every command is undoable through
`/undo` and `/redo`. Tables are held in memory only.
""",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS for local UI dev (Vite default port 5173)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/")
def root():
    return {"service": "decision-table-editor", "docs": "/docs", "api": "/api"}
