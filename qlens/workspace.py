"""One analysis session: inputs, the current report, and its export.

The web app keeps a single :class:`Workspace` on ``app.state``; the CLI
builds one per invocation.  Everything here runs on one event loop, so the
"one generation in flight" rule is a plain status check, not a lock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from qlens.config import QLensSettings
from qlens.llm.client import LLMClient, LLMUsageTracker
from qlens.llm.structured import AnalysisReport
from qlens.models import InputState, ReportState, ReportStatus
from qlens.stages.generate_insights import (
    GENERIC_MESSAGE,
    InsightGenerationError,
    create_client,
    generate_insights,
)
from qlens.stages.ingest import UploadError, read_transcript_file, validate_upload

logger = logging.getLogger(__name__)

TRANSCRIPT_REQUIRED = "Please upload a transcript file."
CONTEXT_REQUIRED = "Please provide context for the focus group."


class InputValidationError(ValueError):
    """The inputs are incomplete; nothing was sent to the model."""


class WorkspaceBusyError(RuntimeError):
    """An analysis is already in flight."""


class Workspace:
    """Holds the inputs and the report state for one user session."""

    def __init__(
        self,
        settings: QLensSettings,
        client_factory: Callable[[QLensSettings], LLMClient] = create_client,
    ) -> None:
        self.settings = settings
        self.inputs = InputState()
        self.state = ReportState()
        self.usage: LLMUsageTracker | None = None
        self._client_factory = client_factory

    # -- Inputs ------------------------------------------------------------

    def upload(self, filename: str, data: bytes) -> str:
        """Validate and accept a transcript upload.

        On failure the error is recorded on :attr:`inputs` and re-raised.
        Whether the previously accepted transcript survives depends on the
        kind of failure (see :class:`~qlens.stages.ingest.UploadError`).
        """
        return self._accept(filename, lambda: validate_upload(filename, data))

    def upload_file(self, path: Path) -> str:
        """Same as :meth:`upload`, reading the transcript from disk."""
        return self._accept(path.name, lambda: read_transcript_file(path))

    def _accept(self, filename: str, load: Callable[[], str]) -> str:
        try:
            text = load()
        except UploadError as exc:
            self.inputs.upload_error = exc.message
            if exc.clears_transcript:
                self.inputs.clear_transcript()
            raise
        self.inputs.transcript = text
        self.inputs.filename = filename
        self.inputs.upload_error = None
        return text

    def check_inputs(self, context: str) -> None:
        """Raise :class:`InputValidationError` unless an analysis can start."""
        if not self.inputs.transcript:
            raise InputValidationError(TRANSCRIPT_REQUIRED)
        if not context.strip():
            raise InputValidationError(CONTEXT_REQUIRED)

    # -- Analysis ----------------------------------------------------------

    async def analyze(self, context: str, custom_prompt: str | None = None) -> AnalysisReport | None:
        """Run one generation and move the report state accordingly.

        Returns the new report, or ``None`` when generation failed (the
        message is then on ``state.error``).

        Raises:
            WorkspaceBusyError: A generation is already running.
            InputValidationError: Transcript or context is missing.
        """
        if self.state.is_loading:
            raise WorkspaceBusyError("An analysis is already running.")

        self.inputs.context = context
        self.inputs.custom_prompt = custom_prompt or ""
        self.check_inputs(context)
        transcript = self.inputs.transcript
        assert transcript is not None

        self.state.start()
        try:
            client = self._client_factory(self.settings)
            self.usage = client.tracker
            report = await generate_insights(transcript, context, custom_prompt, client)
        except InsightGenerationError as exc:
            self.state.fail(str(exc))
            return None
        except Exception:
            logger.exception("Unexpected failure while building the LLM client")
            self.state.fail(GENERIC_MESSAGE)
            return None
        except BaseException:
            # Cancelled mid-call; loading must not outlive the call
            logger.warning("Analysis cancelled before the model answered")
            self.state.fail(GENERIC_MESSAGE)
            raise

        self.state.succeed(report)
        return report

    # -- Export ------------------------------------------------------------

    @property
    def can_export(self) -> bool:
        return self.state.status is ReportStatus.POPULATED and self.state.report is not None

    def export(self) -> bytes | None:
        """Build the downloadable document for the current report.

        Without a report this is a no-op that logs a warning and returns
        ``None``.
        """
        report = self.state.report
        if not self.can_export or report is None:
            logger.warning("Export requested with no report (state=%s)", self.state.status.value)
            return None

        from qlens.stages.export import export_report
        from qlens.stages.render_html import render_report_html

        title = self.settings.report_title
        return export_report(render_report_html(report, title), report, title)
