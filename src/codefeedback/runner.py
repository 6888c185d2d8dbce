"""One-file-at-a-time analysis over a repository scan.

``step_next`` is a single externally driven step: it never loops and never
runs anything in the background. The caller holds the ``ScanState`` and
decides whether to retry a failed file or stop.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import httpx
from pydantic import BaseModel, ConfigDict

from codefeedback.errors import CodeFeedbackError, ConfigurationError
from codefeedback.languages import infer_language
from codefeedback.origins.base import RepositoryOrigin
from codefeedback.parsing import interpret_response, require_code
from codefeedback.providers.dispatcher import dispatch
from codefeedback.schemas.analysis import SEQUENTIAL_FILE_ACTIONS, AnalysisAction, ParsedResponse
from codefeedback.schemas.repository import RemoteFileEntry, ScanState
from codefeedback.schemas.settings import AiSettings

logger = logging.getLogger(__name__)


class StepResult(BaseModel):
    """Outcome of one ``step_next`` call.

    On success ``state`` is advanced by one and ``response`` is set. On
    failure ``state`` is the unchanged input and ``error`` is set. When the
    scan was already complete ``done`` is True and nothing else is set.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: ScanState
    entry: RemoteFileEntry | None = None
    language: str | None = None
    response: ParsedResponse | None = None
    error: CodeFeedbackError | None = None
    done: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.done


def check_sequential_action(action: AnalysisAction | str) -> AnalysisAction:
    try:
        resolved = AnalysisAction(action)
    except ValueError:
        resolved = None
    if resolved not in SEQUENTIAL_FILE_ACTIONS:
        allowed = ", ".join(sorted(a.value for a in SEQUENTIAL_FILE_ACTIONS))
        raise ConfigurationError(
            f"Action '{action}' cannot be applied to existing code; choose one of: {allowed}",
            field="action",
        )
    return resolved


async def step_next(
    origin: RepositoryOrigin,
    state: ScanState,
    action: AnalysisAction | str,
    settings: AiSettings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> StepResult:
    """Fetch, analyze and parse the file under the cursor.

    The cursor advances only when every stage succeeds, so calling again
    after a failure retries the same file.
    """
    file_action = check_sequential_action(action)
    entry = state.current
    if entry is None:
        return StepResult(state=state, done=True)

    language = infer_language(entry.name)
    logger.info(
        "Analyzing file %d/%d: %s (%s, %s)",
        state.cursor + 1,
        len(state.files),
        entry.path,
        language,
        file_action.label,
    )
    try:
        content = await origin.fetch_file(entry)
        raw = await dispatch(content, language, file_action, settings, http_client=http_client)
        parsed = require_code(interpret_response(raw, language, file_action), file_action)
    except CodeFeedbackError as exc:
        logger.error("Error processing %s: %s", entry.path, exc)
        return StepResult(state=state, entry=entry, language=language, error=exc)

    return StepResult(state=state.advanced(), entry=entry, language=language, response=parsed)


async def run_all(
    origin: RepositoryOrigin,
    state: ScanState,
    action: AnalysisAction | str,
    settings: AiSettings,
    *,
    on_result: Callable[[StepResult], Awaitable[None] | None] | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> StepResult:
    """Step through the remaining files until done or the first failure.

    Returns the last ``StepResult``: ``done`` when every file succeeded,
    otherwise the failing step with the cursor still on that file.
    """
    check_sequential_action(action)
    while True:
        result = await step_next(origin, state, action, settings, http_client=http_client)
        if result.done:
            return result
        if on_result is not None:
            maybe = on_result(result)
            if maybe is not None:
                await maybe
        if result.error is not None:
            return result
        state = result.state
