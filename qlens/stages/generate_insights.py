"""Generate the structured analysis report with a single LLM call."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from qlens.config import QLensSettings
from qlens.llm.client import EmptyResponseError, LLMClient
from qlens.llm.prompts import build_report_prompt
from qlens.llm.structured import AnalysisReport

logger = logging.getLogger(__name__)

CREDENTIAL_MESSAGE = "The API key is invalid. Please check your environment configuration."
GENERIC_MESSAGE = "Failed to generate insights. The model may have returned an invalid response."

# Substrings SDKs put in auth failures that don't carry a status code
_CREDENTIAL_MARKERS = (
    "API_KEY_INVALID",
    "API key not valid",
    "API key not set",
    "invalid x-api-key",
    "Incorrect API key",
)
_CREDENTIAL_EXC_NAMES = frozenset({"AuthenticationError", "PermissionDeniedError"})


class InsightGenerationError(Exception):
    """Generation failed; ``str(exc)`` is safe to show to the user."""

    def __init__(self, message: str = GENERIC_MESSAGE) -> None:
        super().__init__(message)


class CredentialError(InsightGenerationError):
    """The provider rejected (or was never given) an API key."""

    def __init__(self, message: str = CREDENTIAL_MESSAGE) -> None:
        super().__init__(message)


class ReportValidationError(InsightGenerationError):
    """The model answered, but not with JSON that satisfies the report schema."""


def is_credential_failure(exc: BaseException) -> bool:
    """True when *exc* looks like an authentication/authorisation failure."""
    if any(cls.__name__ in _CREDENTIAL_EXC_NAMES for cls in type(exc).__mro__):
        return True
    status = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if status in (401, 403):
        return True
    message = str(exc)
    return any(marker in message for marker in _CREDENTIAL_MARKERS)


async def generate_insights(
    transcript: str,
    context: str,
    custom_prompt: str | None,
    llm_client: LLMClient,
) -> AnalysisReport:
    """Run one analysis request and return the validated report.

    The caller guarantees ``transcript`` and ``context`` are non-empty.
    No retry is attempted: the first failure is raised.

    Raises:
        CredentialError: The API key is missing, invalid, or not permitted.
        ReportValidationError: The response was empty or not schema-conforming JSON.
        InsightGenerationError: Any other failure.
    """
    prompt = build_report_prompt(transcript, context, custom_prompt)

    logger.info(
        "Generating report: provider=%s model=%s transcript_chars=%d",
        llm_client.provider,
        llm_client.model_name,
        len(transcript),
    )

    try:
        report = await llm_client.analyze(
            system_prompt=prompt.system,
            user_prompt=prompt.user,
            response_model=AnalysisReport,
        )
    except (json.JSONDecodeError, ValidationError, EmptyResponseError) as exc:
        logger.error("Model response did not match the report schema: %s", exc)
        raise ReportValidationError() from exc
    except Exception as exc:
        if is_credential_failure(exc):
            logger.error("Credential failure from %s: %s", llm_client.provider, exc)
            raise CredentialError() from exc
        logger.error("Error generating insights: %s", exc, exc_info=True)
        raise InsightGenerationError() from exc

    logger.info(
        "Report generated: %d archetypes, %d emotion points, %d themes",
        len(report.archetype_mapping.data),
        len(report.emotion_trajectory.data),
        len(report.top_themes.data),
    )
    return report


def create_client(settings: QLensSettings) -> LLMClient:
    """Build an LLM client, mapping a missing API key to :class:`CredentialError`."""
    try:
        return LLMClient(settings)
    except ValueError as exc:
        logger.error("%s", exc)
        raise CredentialError() from exc
