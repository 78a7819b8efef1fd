"""Liveness probe with a snapshot of the workspace."""

from __future__ import annotations

from fastapi import APIRouter, Request

from qlens import __version__

router = APIRouter(prefix="/api")


@router.get("/health")
def health(request: Request) -> dict[str, str | bool]:
    workspace = request.app.state.workspace
    return {
        "status": "ok",
        "version": __version__,
        "provider": workspace.settings.llm_provider,
        "report": workspace.state.status.value,
        "transcriptLoaded": workspace.inputs.transcript is not None,
    }
