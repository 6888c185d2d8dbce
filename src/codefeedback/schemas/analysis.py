"""Analysis request and result models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


class AnalysisAction(str, Enum):
    """What the model is asked to do with the code (or description)."""

    REVIEW = "review"
    INSIGHTS = "insights"
    SUGGEST_EDITS = "suggest_edits"
    GENERATE_CODE = "generate_code"
    SEQUENTIAL_FILE_ANALYSIS = "sequential_file_analysis"

    @property
    def expects_code(self) -> bool:
        """True when the reply must end with a fenced code block."""
        return self in (AnalysisAction.SUGGEST_EDITS, AnalysisAction.GENERATE_CODE)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


# Actions that may be applied to each file of a sequential repository scan.
SEQUENTIAL_FILE_ACTIONS = frozenset(
    {AnalysisAction.REVIEW, AnalysisAction.INSIGHTS, AnalysisAction.SUGGEST_EDITS}
)


class PromptContent(BaseModel):
    """System message plus the user's query."""

    system: str
    user: str


class ParsedResponse(BaseModel):
    """Model reply split into prose and (optionally) a single code block."""

    explanation: str
    code: str | None = None


class TestConnectionResult(BaseModel):
    """Outcome of a provider liveness / credential check."""

    success: bool
    message: str
    data: dict[str, Any] | None = None
