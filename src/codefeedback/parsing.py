"""Recover an explanation and a code block from free-form model output.

Edit and generation prompts ask the model for prose first and exactly one
fenced code block last. Models mostly comply, but not always: the block may
carry a different language tag (or none), the prose may end with the
"Modified Code:" label echoed from the prompt, or the prose may come after
the code. ``parse_response`` handles those cases; it never raises.
"""

from __future__ import annotations

import logging
import re

from codefeedback.errors import MalformedResponseError
from codefeedback.schemas.analysis import AnalysisAction, ParsedResponse

logger = logging.getLogger(__name__)

# Opening fence, optional tag, body, first closing fence. A tag is only
# taken from a line of its own, so a one-line fence keeps its first token.
# Matches are non-overlapping, so a closing fence is never mistaken for the
# next opening.
_FENCE_RE = re.compile(r"```(?:(?P<tag>[^\s`]*)[ \t]*\r?\n)?(?P<body>.*?)```", re.DOTALL)

# Boilerplate labels the prompt templates themselves request. Each group is
# checked in order; within a group the first label whose tail (label to end
# of explanation) is shorter than its window is cut off.
PREAMBLE_LABEL_WINDOWS: tuple[tuple[tuple[str, int], ...], ...] = (
    (("modified code:", 25), ("generated code:", 25)),
    (("explanation of changes:", 30), ("explanation of generated code:", 40)),
)

# Prose after the code block only replaces an empty explanation when longer than this.
TRAILING_EXPLANATION_MIN_CHARS = 20

CODE_WITHOUT_EXPLANATION_PLACEHOLDER = (
    "(AI provided code without a separate explanation, or explanation parsing failed.)"
)
EMPTY_RESPONSE_PLACEHOLDER = "(AI response was empty or not in the expected format.)"


def _find_code_block(text: str, language: str) -> re.Match[str] | None:
    """First block tagged with ``language`` (or untagged), else the first block."""
    blocks = list(_FENCE_RE.finditer(text))
    if not blocks:
        return None
    lang_re = re.compile(re.escape(language), re.IGNORECASE) if language else None
    for block in blocks:
        tag = block.group("tag")
        if not tag or (lang_re is not None and lang_re.search(tag)):
            return block
    return blocks[0]


def _clean_code(body: str) -> str:
    if "\n" not in body:
        return body.strip()
    # Drop blank lines around the code but keep the first line's indentation.
    return re.sub(r"\A[ \t]*\n(?:[ \t]*\n)*", "", body).rstrip()


def _strip_preamble_labels(explanation: str) -> str:
    for group in PREAMBLE_LABEL_WINDOWS:
        lowered = explanation.lower()
        for label, window in group:
            idx = lowered.rfind(label)
            if idx > -1 and len(explanation) - idx < window:
                explanation = explanation[:idx].strip()
                break
    return explanation


def parse_response(raw_text: str, expected_language: str) -> ParsedResponse:
    """Split ``raw_text`` into an explanation and (if present) a code block."""
    raw_text = raw_text or ""
    block = _find_code_block(raw_text, expected_language)

    if block is None:
        if raw_text.strip():
            logger.debug("No fenced code block in model response; using full text as explanation")
            return ParsedResponse(explanation=raw_text.strip(), code=None)
        return ParsedResponse(explanation=EMPTY_RESPONSE_PLACEHOLDER, code=None)

    code = _clean_code(block.group("body"))
    explanation = _strip_preamble_labels(raw_text[: block.start()].strip())

    if not explanation:
        after = raw_text[block.end():].strip()
        if len(after) > TRAILING_EXPLANATION_MIN_CHARS:
            explanation = after

    if not explanation and code:
        explanation = CODE_WITHOUT_EXPLANATION_PLACEHOLDER
    elif not explanation:
        explanation = EMPTY_RESPONSE_PLACEHOLDER

    return ParsedResponse(explanation=explanation, code=code or None)


def interpret_response(raw_text: str, language: str, action: AnalysisAction) -> ParsedResponse:
    """Interpret a reply according to the action that produced it.

    Reviews and insights are shown verbatim; edits and generated code are
    split with ``parse_response``.
    """
    if AnalysisAction(action).expects_code:
        return parse_response(raw_text, language)
    text = (raw_text or "").strip()
    return ParsedResponse(explanation=text or EMPTY_RESPONSE_PLACEHOLDER, code=None)


def require_code(parsed: ParsedResponse, action: AnalysisAction) -> ParsedResponse:
    """Raise ``MalformedResponseError`` when a code-producing reply has nothing usable."""
    if not AnalysisAction(action).expects_code or parsed.code:
        return parsed
    if parsed.explanation == EMPTY_RESPONSE_PLACEHOLDER:
        raise MalformedResponseError(
            f"AI failed to provide {AnalysisAction(action).label} output. "
            "The response was empty or malformed."
        )
    return parsed


def missing_code_warning(parsed: ParsedResponse, action: AnalysisAction) -> str | None:
    """User-facing note when an edit/generation reply carried prose but no code block."""
    if not AnalysisAction(action).expects_code or parsed.code:
        return None
    kind = "modified" if AnalysisAction(action) is AnalysisAction.SUGGEST_EDITS else "generated"
    return (
        f"AI provided an explanation but no {kind} code block was found or it was "
        "not formatted correctly. Please check the raw feedback."
    )
