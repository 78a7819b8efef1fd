"""Workspace API: transcript upload, analysis, report state, and download."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from qlens.llm.structured import report_response_schema
from qlens.stages.export import EXPORT_FILENAME, EXPORT_MEDIA_TYPE
from qlens.stages.ingest import UploadError
from qlens.stages.render_html import render_report_html
from qlens.workspace import InputValidationError, Workspace, WorkspaceBusyError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class AnalyzeRequest(BaseModel):
    """Body of ``POST /api/analyze``."""

    model_config = ConfigDict(populate_by_name=True)

    context: str = ""
    custom_prompt: str = Field(default="", alias="customPrompt")


class UploadResponse(BaseModel):
    filename: str
    characters: int


class ReportStateResponse(BaseModel):
    """Current report state, with the rendered fragment when populated."""

    status: str
    error: str | None = None
    report: dict[str, Any] | None = None
    html: str | None = None


def _get_workspace(request: Request) -> Workspace:
    return request.app.state.workspace


def _state_response(request: Request) -> ReportStateResponse:
    workspace = _get_workspace(request)
    state = workspace.state
    report = state.report
    return ReportStateResponse(
        status=state.status.value,
        error=state.error,
        report=report.to_json_dict() if report is not None else None,
        html=(
            render_report_html(report, request.app.state.settings.report_title)
            if report is not None
            else None
        ),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.put("/transcript", response_model=UploadResponse)
async def upload_transcript(
    request: Request,
    filename: str = Query(..., min_length=1),
) -> UploadResponse | JSONResponse:
    """Accept a transcript as the raw request body."""
    workspace = _get_workspace(request)
    data = await request.body()
    try:
        text = workspace.upload(filename, data)
    except UploadError as exc:
        return JSONResponse(
            status_code=422,
            content={"detail": exc.message, "cleared": exc.clears_transcript},
        )
    return UploadResponse(filename=filename, characters=len(text))


@router.post("/analyze", response_model=ReportStateResponse)
async def analyze(body: AnalyzeRequest, request: Request) -> ReportStateResponse:
    """Run one analysis.

    Generation failures are not HTTP errors: they come back as the
    ``error`` state with a user-facing message.
    """
    workspace = _get_workspace(request)
    try:
        await workspace.analyze(body.context, body.custom_prompt or None)
    except WorkspaceBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InputValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _state_response(request)


@router.get("/report", response_model=ReportStateResponse)
def get_report(request: Request) -> ReportStateResponse:
    return _state_response(request)


@router.get("/report/download", response_model=None)
def download_report(request: Request) -> Response:
    """Return the self-contained export, or 204 when there is no report."""
    data = _get_workspace(request).export()
    if data is None:
        return Response(status_code=204)
    return Response(
        content=data,
        media_type=EXPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@router.get("/schema")
def get_schema() -> dict[str, Any]:
    """The response schema sent with every generation request."""
    return report_response_schema()
