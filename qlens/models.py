"""Session state for one analysis workspace.

The report itself is an immutable :class:`~qlens.llm.structured.AnalysisReport`;
these classes only track where the workspace is in its lifecycle and what the
user has entered so far.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from qlens.llm.structured import AnalysisReport


class ReportStatus(str, Enum):
    NONE = "none"
    LOADING = "loading"
    ERROR = "error"
    POPULATED = "populated"


class ReportState:
    """Exactly one of none / loading / error / populated.

    The fields are only ever changed together through the transition
    methods, so a report and an error never coexist and a report never
    survives into a new loading phase.
    """

    def __init__(self) -> None:
        self._status = ReportStatus.NONE
        self._report: AnalysisReport | None = None
        self._error: str | None = None

    @property
    def status(self) -> ReportStatus:
        return self._status

    @property
    def report(self) -> AnalysisReport | None:
        return self._report

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._status is ReportStatus.LOADING

    def start(self) -> None:
        """Enter loading; the previous report and error are discarded."""
        self._status = ReportStatus.LOADING
        self._report = None
        self._error = None

    def succeed(self, report: AnalysisReport) -> None:
        self._status = ReportStatus.POPULATED
        self._report = report
        self._error = None

    def fail(self, message: str) -> None:
        self._status = ReportStatus.ERROR
        self._report = None
        self._error = message

    def reset(self) -> None:
        self._status = ReportStatus.NONE
        self._report = None
        self._error = None


@dataclass
class InputState:
    """What the user has supplied for the next analysis."""

    transcript: str | None = None
    filename: str | None = None
    context: str = ""
    custom_prompt: str = ""
    upload_error: str | None = None

    def clear_transcript(self) -> None:
        self.transcript = None
        self.filename = None
