"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from qlens.config import QLensSettings, load_settings
from qlens.llm.client import LLMClient
from qlens.server.routes.health import router as health_router
from qlens.server.routes.report import router as report_router
from qlens.stages.render_html import render_app_page
from qlens.workspace import Workspace

logger = logging.getLogger(__name__)


def create_app(
    settings: QLensSettings | None = None,
    output_dir: Path | None = None,
    verbose: bool = False,
    client_factory: Callable[[QLensSettings], LLMClient] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration; loaded from env / ``.env`` when omitted.
        output_dir: Where the persistent log file goes
            (``<output_dir>/.qlens/qlens.log``).  No file log when omitted.
        verbose: When True, terminal handler shows DEBUG-level messages.
        client_factory: Builds the LLM client for each analysis.  Tests
            pass a fake here.
    """
    if output_dir is not None:
        from qlens.logging import setup_logging

        setup_logging(output_dir=output_dir, verbose=verbose)

    if settings is None:
        settings = load_settings()

    app = FastAPI(title="Q-Lens", docs_url="/api/docs", redoc_url=None)

    if client_factory is None:
        workspace = Workspace(settings)
    else:
        workspace = Workspace(settings, client_factory=client_factory)

    app.state.settings = settings
    app.state.workspace = workspace

    app.include_router(health_router)
    app.include_router(report_router)

    @app.get("/", response_class=HTMLResponse)
    def index() -> HTMLResponse:
        """Two-pane workspace page."""
        return HTMLResponse(render_app_page(workspace, settings.report_title))

    logger.info(
        "Q-Lens app ready: provider=%s model=%s",
        settings.llm_provider,
        settings.llm_model,
    )
    return app
