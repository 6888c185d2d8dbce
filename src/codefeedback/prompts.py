"""Prompt templates for each analysis action."""

from __future__ import annotations

from codefeedback.schemas.analysis import AnalysisAction, PromptContent

REVIEW_SYSTEM_PROMPT = """\
You are an expert code reviewer. Your task is to provide a comprehensive and \
constructive review of the provided code snippet. Focus on correctness, best \
practices, readability, performance, and security. Provide feedback in markdown, \
starting with a brief overall summary."""

INSIGHTS_SYSTEM_PROMPT = """\
You are an expert code analyst. Your task is to provide high-level insights about \
the provided code snippet (single file). Focus on main purpose, key components, \
notable patterns, and high-level observations. Provide insights in markdown. \
Be concise."""

SUGGEST_EDITS_SYSTEM_PROMPT = """\
You are an AI assistant that helps improve code.
Review the provided code, identify areas for improvement, and provide the complete, \
edited version of the code that incorporates your suggestions.
Instructions:
1. First, provide a clear, concise explanation of the changes you are suggesting \
and why. Use markdown for this explanation.
2. After your explanation, provide the complete, modified code block. Enclose the \
modified code block within triple backticks, specifying the language \
(e.g., ```{language} ...code... ```).
Ensure no other text follows the final triple backticks of the code block."""

GENERATE_CODE_SYSTEM_PROMPT = """\
You are an AI code generation assistant. Your task is to generate a functional code \
snippet based on the user's description in the specified target language.
Instructions:
1. First, provide a brief explanation of the generated code and how it addresses \
the user's request. Use markdown for this explanation.
2. After your explanation, provide the complete, generated code block. Enclose the \
generated code block within triple backticks, specifying the language \
(e.g., ```{language} ...code... ```).
Ensure no other text follows the final triple backticks of the code block.
If the request is too complex for a single snippet, generate the core functionality \
and suggest how it could be expanded."""

REVIEW_USER_TEMPLATE = "Language: {language}\n\nCode to review:\n```{language}\n{code}\n```\n\nReview:"

INSIGHTS_USER_TEMPLATE = "Language: {language}\n\nCode to analyze:\n```{language}\n{code}\n```\n\nInsights:"

SUGGEST_EDITS_USER_TEMPLATE = (
    "Language: {language}\n\nOriginal Code:\n```{language}\n{code}\n```\n\n"
    "Explanation of Changes:\n[Your explanation here]\n\nModified Code:"
)

GENERATE_CODE_USER_TEMPLATE = (
    "Target Language: {language}\n\nDescription of code to generate:\n{code}\n\n"
    "Explanation of Generated Code:\n[Your explanation here]\n\nGenerated Code:"
)

# Used by every provider's connection test.
CONNECTION_TEST_SYSTEM_PROMPT = "You are a helpful assistant."
CONNECTION_TEST_USER_PROMPT = "Test: Respond with OK."

_TEMPLATES: dict[AnalysisAction, tuple[str, str]] = {
    AnalysisAction.REVIEW: (REVIEW_SYSTEM_PROMPT, REVIEW_USER_TEMPLATE),
    AnalysisAction.INSIGHTS: (INSIGHTS_SYSTEM_PROMPT, INSIGHTS_USER_TEMPLATE),
    AnalysisAction.SUGGEST_EDITS: (SUGGEST_EDITS_SYSTEM_PROMPT, SUGGEST_EDITS_USER_TEMPLATE),
    AnalysisAction.GENERATE_CODE: (GENERATE_CODE_SYSTEM_PROMPT, GENERATE_CODE_USER_TEMPLATE),
    # A sequential scan dispatched as a whole is reviewed file by file.
    AnalysisAction.SEQUENTIAL_FILE_ANALYSIS: (REVIEW_SYSTEM_PROMPT, REVIEW_USER_TEMPLATE),
}


def build_prompt(action: AnalysisAction, content: str, language: str) -> PromptContent:
    """Build the system/user prompt pair for ``action``.

    ``content`` is the code to analyze, or the description of the code to
    write for ``generate_code``. ``language`` is the code's language or the
    generation target. Pure: the same inputs always produce the same prompt.
    """
    system_template, user_template = _TEMPLATES[AnalysisAction(action)]
    # str.replace rather than str.format: code routinely contains braces.
    system = system_template.replace("{language}", language)
    user = user_template.replace("{language}", language).replace("{code}", content)
    return PromptContent(system=system, user=user)


def build_messages(prompt: PromptContent) -> list[dict[str, str]]:
    """Chat-completion messages for a prompt pair."""
    return [
        {"role": "system", "content": prompt.system},
        {"role": "user", "content": prompt.user},
    ]


def connection_test_prompt() -> PromptContent:
    return PromptContent(system=CONNECTION_TEST_SYSTEM_PROMPT, user=CONNECTION_TEST_USER_PROMPT)
