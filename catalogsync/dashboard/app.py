"""FastAPI web dashboard: entity list and detail views."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from ..config import Config
from ..coordinator import SyncCoordinator
from ..errors import NotFound

logger = logging.getLogger(__name__)

# Template directory
TEMPLATE_DIR = Path(__file__).parent / "templates"


def create_app(config: Config, coordinator: SyncCoordinator) -> FastAPI:
    """Create the FastAPI dashboard application.

    Args:
        config: Application configuration.
        coordinator: Sync coordinator for this dashboard session.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Catalog Dashboard",
        description="Browse the locally cached entity catalog",
        version="0.1.0",
    )

    # Store references for route handlers
    app.state.config = config
    app.state.coordinator = coordinator

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    # ==================== HTML Routes ====================

    def render_index(request: Request):
        snapshot = coordinator.snapshot()
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "page": "index",
                "entities": snapshot["data"] or [],
                "loading": snapshot["loading"],
                "error": snapshot["error"],
            },
        )

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request):
        """Entity list page. Opening it triggers a (possibly cached) sync."""
        await coordinator.sync()
        return render_index(request)

    @app.post("/sync", response_class=HTMLResponse)
    async def refresh_page(request: Request):
        """Refresh button: forced sync, then the list page with its outcome."""
        await coordinator.sync(force_refresh=True)
        return render_index(request)

    @app.post("/reset", response_class=HTMLResponse)
    async def reset_page(request: Request):
        """Recovery button: reset and resync, then the list page."""
        await coordinator.reset_and_resync()
        return render_index(request)

    @app.get("/entities/{uuid}", response_class=HTMLResponse)
    async def detail_page(request: Request, uuid: int):
        """Entity detail page."""
        try:
            entity = await coordinator.get_entity(uuid)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

        return templates.TemplateResponse(
            request,
            "detail.html",
            {"page": "detail", "entity": entity.to_dict()},
        )

    # ==================== API Routes (JSON) ====================

    @app.get("/api/entities")
    async def api_entities() -> dict[str, Any]:
        """Currently published entity list."""
        snapshot = coordinator.snapshot()
        entities = snapshot["data"] or []
        return {"count": len(entities), "entities": entities}

    @app.get("/api/entities/{uuid}")
    async def api_entity(uuid: int) -> dict[str, Any]:
        try:
            entity = await coordinator.get_entity(uuid)
        except NotFound as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return entity.to_dict()

    @app.get("/api/state")
    async def api_state() -> dict[str, Any]:
        return coordinator.snapshot()

    @app.post("/api/sync")
    async def api_sync(force: bool = False) -> dict[str, Any]:
        """Trigger a sync; ``force`` skips the freshness check."""
        await coordinator.sync(force_refresh=force)
        return coordinator.snapshot()

    @app.post("/api/reset")
    async def api_reset() -> dict[str, Any]:
        """Clear the cache and resync from the remote."""
        await coordinator.reset_and_resync()
        return coordinator.snapshot()

    @app.get("/api/health")
    async def api_health() -> dict[str, Any]:
        """Health check endpoint.

        Always returns 200 OK; the error flag reflects the last refresh.
        """
        snapshot = coordinator.snapshot()
        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
            "remote_url": config.remote.url,
            "session_closed": coordinator.closed,
            "loading": snapshot["loading"],
            "error": snapshot["error"],
        }

    return app
