"""Supported languages and file-extension based language inference."""

from __future__ import annotations

from pathlib import PurePosixPath

DEFAULT_LANGUAGE = "javascript"

SUPPORTED_LANGUAGES: dict[str, str] = {
    "javascript": "JavaScript",
    "python": "Python",
    "java": "Java",
    "typescript": "TypeScript",
    "csharp": "C#",
    "cpp": "C++",
    "go": "Go",
    "rust": "Rust",
    "ruby": "Ruby",
    "php": "PHP",
    "html": "HTML",
    "css": "CSS",
    "sql": "SQL",
    "kotlin": "Kotlin",
    "swift": "Swift",
    "markdown": "Markdown",
    "shell": "Shell Script (Bash/Sh/Zsh)",
    "powershell": "PowerShell",
    "batch": "Batch (CMD)",
    "json": "JSON",
    "yaml": "YAML",
    "xml": "XML",
}

FILE_EXTENSION_TO_LANGUAGE: dict[str, str] = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cs": "csharp",
    "cpp": "cpp",
    "c": "cpp",
    "h": "cpp",
    "hpp": "cpp",
    "go": "go",
    "rs": "rust",
    "rb": "ruby",
    "php": "php",
    "html": "html",
    "htm": "html",
    "css": "css",
    "scss": "css",
    "sass": "css",
    "sql": "sql",
    "kt": "kotlin",
    "kts": "kotlin",
    "swift": "swift",
    "md": "markdown",
    "sh": "shell",
    "bash": "shell",
    "zsh": "shell",
    "ps1": "powershell",
    "psm1": "powershell",
    "bat": "batch",
    "cmd": "batch",
    "json": "json",
    "yaml": "yaml",
    "yml": "yaml",
    "xml": "xml",
}


def file_extension(name: str) -> str | None:
    """Lower-cased extension of a file name without the dot, or None."""
    suffix = PurePosixPath(name).suffix
    return suffix[1:].lower() if suffix else None


def language_for_extension(name: str) -> str | None:
    """Language mapped from the file's extension, or None when unknown."""
    ext = file_extension(name)
    if ext is None:
        return None
    return FILE_EXTENSION_TO_LANGUAGE.get(ext)


def infer_language(name: str | None, default: str = DEFAULT_LANGUAGE) -> str:
    """Infer the language of a file from its name.

    Falls back to ``default`` when the name is missing, the extension is
    unmapped, or the mapped language is not in ``SUPPORTED_LANGUAGES``.
    Only the last path component is considered.
    """
    if not name:
        return default
    language = language_for_extension(PurePosixPath(name).name)
    if language and language in SUPPORTED_LANGUAGES:
        return language
    return default


def extension_for_language(language: str) -> str:
    """First extension mapped to ``language`` (used to name saved code), else ``txt``."""
    for ext, lang in FILE_EXTENSION_TO_LANGUAGE.items():
        if lang == language:
            return ext
    return "txt"
