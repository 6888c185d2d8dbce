"""Typer CLI: ``codefeedback review``, ``generate``, ``fetch``, ``scan`` and provider tools."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from pathlib import Path, PurePosixPath
from typing import Any, TypeVar

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.syntax import Syntax
from rich.table import Table

from codefeedback.config import DEFAULT_SETTINGS_PATH, resolve_settings, save_settings
from codefeedback.errors import CodeFeedbackError
from codefeedback.languages import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, extension_for_language, infer_language
from codefeedback.origins.drive import drive_download_url, fetch_drive_file, infer_language_from_drive_name, parse_drive_link
from codefeedback.origins.gcs import fetch_gcs_object, gcs_object_url, infer_language_from_object_name, parse_gcs_url
from codefeedback.origins.github import GitHubOrigin, parse_github_url
from codefeedback.parsing import interpret_response, missing_code_warning, require_code
from codefeedback.providers import dispatcher
from codefeedback.runner import check_sequential_action, step_next
from codefeedback.scanner import RepositoryScanner
from codefeedback.schemas.analysis import AnalysisAction, ParsedResponse
from codefeedback.schemas.repository import RemoteFileEntry, ScanLimits, ScanState
from codefeedback.schemas.settings import AiSettings
from codefeedback.shared.progress import ScanProgress, confirm_next, confirm_retry, print_phase

# Load .env file from the working directory (if it exists)
load_dotenv()

app = typer.Typer(
    name="codefeedback",
    help="AI code review, insights, suggested edits and code generation.",
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Show or create the provider settings file.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")
console = Console()

SECRET_FIELDS = ("api_key", "lm_studio_api_key")

T = TypeVar("T")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )
    # httpx logs every HTTP request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_settings(path: Path | None) -> AiSettings:
    try:
        return resolve_settings(path)
    except (FileNotFoundError, ValueError, ValidationError, CodeFeedbackError) as exc:
        console.print(f"[red]Settings could not be loaded:[/] {exc}")
        raise typer.Exit(code=1)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning package errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except CodeFeedbackError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)


def _check_language(language: str) -> str:
    if language not in SUPPORTED_LANGUAGES:
        choices = ", ".join(SUPPORTED_LANGUAGES)
        raise typer.BadParameter(f"Unsupported language '{language}'. Choose one of: {choices}")
    return language


def default_code_file_name(language: str, action: AnalysisAction, source_name: str | None = None) -> str:
    """File name used when saving code into a directory."""
    extension = extension_for_language(language)
    if source_name and action is not AnalysisAction.GENERATE_CODE:
        stem, dot, suffix = source_name.rpartition(".")
        if dot and stem and len(suffix) <= 4:
            return f"{stem}.{extension}"
        return f"{source_name}.{extension}"
    kind = "generated_code" if action is AnalysisAction.GENERATE_CODE else "code"
    return f"{language}_{kind}.{extension}"


def _save_code(code: str, target: Path, file_name: str) -> Path:
    path = target / file_name if target.is_dir() else target
    path.write_text(code if code.endswith("\n") else code + "\n")
    console.print(f"[green]Code written to:[/] {path}")
    return path


def _render(parsed: ParsedResponse, language: str, action: AnalysisAction, title: str | None = None) -> None:
    if title:
        console.rule(f"[bold]{title}[/]")
    console.print(Markdown(parsed.explanation))
    if parsed.code:
        heading = "Generated code" if action is AnalysisAction.GENERATE_CODE else "Suggested code"
        console.print(f"\n[bold]{heading}[/] ({language})")
        console.print(Syntax(parsed.code, language, line_numbers=True, word_wrap=True))
    warning = missing_code_warning(parsed, action)
    if warning:
        console.print(f"[yellow]{warning}[/]")


async def _analyze(content: str, language: str, action: AnalysisAction, settings: AiSettings) -> ParsedResponse:
    raw = await dispatcher.dispatch(content, language, action, settings)
    return require_code(interpret_response(raw, language, action), action)


# ----------------------------------------------------------------------
# Analysis commands
# ----------------------------------------------------------------------


@app.command()
def review(
    source: str = typer.Argument(..., help="Path of a local file, or '-' to read the code from stdin."),
    action: AnalysisAction = typer.Option(AnalysisAction.REVIEW, "--action", "-a", help="review, insights or suggest_edits."),
    language: str = typer.Option(None, "--language", "-l", help="Language of the code (inferred from the file name by default)."),
    save: Path = typer.Option(None, "--save", "-o", help="Write suggested code to this file or directory."),
    settings_path: Path = typer.Option(None, "--settings", "-s", help=f"Settings file (default: ./{DEFAULT_SETTINGS_PATH} if present)."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Review, explain or improve a piece of code.

    Examples:

        codefeedback review app.py

        cat main.go | codefeedback review - --language go --action suggest_edits
    """
    _setup_logging(verbose)
    settings = _load_settings(settings_path)

    if source == "-":
        content = typer.get_text_stream("stdin").read()
        source_name = None
    else:
        path = Path(source)
        if not path.is_file():
            console.print(f"[red]File not found:[/] {path}")
            raise typer.Exit(code=1)
        content = path.read_text(errors="replace")
        source_name = path.name
    if not content.strip():
        console.print("[red]Error:[/] no code to analyze.")
        raise typer.Exit(code=1)

    language = _check_language(language or infer_language(source_name))
    try:
        file_action = check_sequential_action(action)
    except CodeFeedbackError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)

    parsed = _run(_analyze(content, language, file_action, settings))
    _render(parsed, language, file_action, title=source_name)
    if save and parsed.code:
        _save_code(parsed.code, save, default_code_file_name(language, file_action, source_name))


@app.command()
def generate(
    description: str = typer.Argument(..., help="What the code should do."),
    language: str = typer.Option(DEFAULT_LANGUAGE, "--language", "-l"),
    save: Path = typer.Option(None, "--save", "-o", help="Write the generated code to this file or directory."),
    settings_path: Path = typer.Option(None, "--settings", "-s"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Generate code from a natural-language description."""
    _setup_logging(verbose)
    settings = _load_settings(settings_path)
    language = _check_language(language)
    if not description.strip():
        console.print("[red]Error:[/] the description is empty.")
        raise typer.Exit(code=1)

    action = AnalysisAction.GENERATE_CODE
    parsed = _run(_analyze(description, language, action, settings))
    _render(parsed, language, action)
    if save and parsed.code:
        _save_code(parsed.code, save, default_code_file_name(language, action))


async def _fetch_remote(url: str, github_path: str | None, token: str | None) -> tuple[str, str, str]:
    """Content, inferred language and display name of a single remote file."""
    gcs = parse_gcs_url(url)
    if gcs is not None:
        content = await fetch_gcs_object(gcs_object_url(gcs.bucket, gcs.object_name))
        return content, infer_language_from_object_name(gcs.object_name), gcs.file_name

    drive = parse_drive_link(url)
    if drive is not None:
        content = await fetch_drive_file(drive_download_url(drive.file_id))
        return content, infer_language_from_drive_name(drive.file_name), drive.file_name or drive.file_id

    repo = parse_github_url(url)
    if repo is not None:
        if not github_path:
            raise typer.BadParameter("GitHub URLs need --path pointing at a file in the repository.")
        origin = GitHubOrigin(*repo, token=token)
        name = PurePosixPath(github_path).name
        entry = RemoteFileEntry(name=name, path=github_path.strip("/"), type="file")
        return await origin.fetch_file(entry), infer_language(name), entry.path

    raise typer.BadParameter(
        "Unrecognized URL. Expected a Cloud Storage object, a Google Drive link or a GitHub repository."
    )


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Cloud Storage object URL, Google Drive share link or GitHub repository URL."),
    path: str = typer.Option(None, "--path", "-p", help="File path inside the repository (GitHub only)."),
    action: AnalysisAction = typer.Option(AnalysisAction.REVIEW, "--action", "-a"),
    language: str = typer.Option(None, "--language", "-l", help="Override the inferred language."),
    token: str = typer.Option(None, "--token", envvar="GITHUB_TOKEN", help="GitHub token for private repositories or higher rate limits."),
    save: Path = typer.Option(None, "--save", "-o"),
    settings_path: Path = typer.Option(None, "--settings", "-s"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Fetch one remote file and analyze it.

    Examples:

        codefeedback fetch https://storage.googleapis.com/my-bucket/src/app.py

        codefeedback fetch https://github.com/owner/repo --path src/main.rs --action insights
    """
    _setup_logging(verbose)
    settings = _load_settings(settings_path)
    try:
        file_action = check_sequential_action(action)
    except CodeFeedbackError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)

    content, inferred, name = _run(_fetch_remote(url, path, token))
    language = _check_language(language or inferred)
    console.print(f"[bold]Fetched:[/] {name} ({len(content)} chars, {language})")

    parsed = _run(_analyze(content, language, file_action, settings))
    _render(parsed, language, file_action, title=name)
    if save and parsed.code:
        _save_code(parsed.code, save, default_code_file_name(language, file_action, PurePosixPath(name).name))


@app.command()
def scan(
    repo_url: str = typer.Argument(..., help="GitHub repository URL, e.g. https://github.com/owner/repo"),
    action: AnalysisAction = typer.Option(AnalysisAction.REVIEW, "--action", "-a", help="Action applied to each file."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Analyze every file without asking."),
    max_depth: int = typer.Option(ScanLimits().max_depth, "--max-depth", min=0),
    max_items: int = typer.Option(ScanLimits().max_items_visited, "--max-items", min=1, help="Cap on files and directories visited."),
    start_from: str = typer.Option(None, "--start-from", help="Skip the files sorted before this path, e.g. to retry a failed file."),
    token: str = typer.Option(None, "--token", envvar="GITHUB_TOKEN"),
    settings_path: Path = typer.Option(None, "--settings", "-s"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Scan a repository and analyze its files one at a time.

    Stops at the first failure. Interactively you are offered a retry of the
    failed file; otherwise re-run with ``--start-from`` to resume there.
    """
    _setup_logging(verbose)
    settings = _load_settings(settings_path)
    repo = parse_github_url(repo_url)
    if repo is None:
        console.print(f"[red]Invalid GitHub repository URL:[/] {repo_url}")
        raise typer.Exit(code=1)
    try:
        file_action = check_sequential_action(action)
    except CodeFeedbackError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(code=1)

    origin = GitHubOrigin(*repo, token=token)
    limits = ScanLimits(max_depth=max_depth, max_items_visited=max_items)
    _run(_scan_and_analyze(origin, limits, file_action, settings, ask=not yes, start_from=start_from))


async def _scan_and_analyze(
    origin: GitHubOrigin,
    limits: ScanLimits,
    action: AnalysisAction,
    settings: AiSettings,
    *,
    ask: bool,
    start_from: str | None = None,
) -> None:
    print_phase(f"Scanning {origin.full_name}")
    scanner = RepositoryScanner(origin, limits)
    files = await scanner.scan()
    for warning in scanner.warnings:
        console.print(f"[yellow]Warning:[/] {warning}")
    if not files:
        console.print("[red]No suitable files found for sequential analysis.[/]")
        raise typer.Exit(code=1)
    console.print(f"Found {len(files)} files (visited {scanner.visited} items).\n")

    paths = [entry.path for entry in files]
    start = 0
    if start_from:
        wanted = start_from.strip("/")
        if wanted not in paths:
            console.print(f"[red]{wanted} is not among the scanned files.[/]")
            raise typer.Exit(code=1)
        start = paths.index(wanted)

    state = ScanState(files=files, cursor=start)
    with ScanProgress(len(files), action.label.title(), start=start) as progress:
        retrying = False
        while state.current is not None:
            entry = state.current
            if ask and not retrying and not confirm_next(entry, progress):
                progress.log_event(f"Stopped before {entry.path} ({state.remaining} files left).", style="yellow")
                return
            progress.start_file(entry)
            result = await step_next(origin, state, action, settings)
            if result.error is not None:
                progress.fail_file(entry, type(result.error).__name__)
                console.print(f"[red]Error analyzing {entry.path}:[/] {result.error}")
                if ask and confirm_retry(entry, progress):
                    progress.log_event(f"Retrying {entry.path}", style="yellow")
                    retrying = True
                    continue
                console.print(
                    f"Stopped at [bold]{entry.path}[/] with {state.remaining} files left. "
                    f"Re-run with [bold]--start-from {entry.path}[/] to retry it."
                )
                raise typer.Exit(code=1)
            retrying = False
            _render(result.response, result.language or DEFAULT_LANGUAGE, action, title=entry.path)
            progress.finish_file(entry)
            state = result.state
    console.print("[green]All files analyzed.[/]")


# ----------------------------------------------------------------------
# Provider tools
# ----------------------------------------------------------------------


@app.command("test-connection")
def test_connection(
    settings_path: Path = typer.Option(None, "--settings", "-s"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Check that the configured provider is reachable and the credentials work."""
    _setup_logging(verbose)
    settings = _load_settings(settings_path)
    result = _run(dispatcher.test_connection(settings))

    style = "green" if result.success else "red"
    console.print(f"[{style}]{settings.provider.label}:[/] {result.message}")
    if result.data and verbose:
        for key, value in result.data.items():
            console.print(f"  {key}: {value}")
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def models(
    settings_path: Path = typer.Option(None, "--settings", "-s"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """List the models offered by the configured provider (e.g. a local server's loaded models)."""
    _setup_logging(verbose)
    settings = _load_settings(settings_path)
    names = _run(dispatcher.list_models(settings))
    if not names:
        console.print(f"[yellow]No models found for {settings.provider.label}.[/]")
        return
    for name in names:
        console.print(name)


# ----------------------------------------------------------------------
# Settings file
# ----------------------------------------------------------------------


@settings_app.command("show")
def settings_show(
    settings_path: Path = typer.Option(None, "--settings", "-s"),
    reveal: bool = typer.Option(False, "--reveal", help="Print API keys in full."),
) -> None:
    """Print the effective settings (file plus environment overrides)."""
    settings = _load_settings(settings_path)
    table = Table(title=f"Provider: {settings.provider.label}")
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in settings.model_dump(mode="json").items():
        if key in SECRET_FIELDS and value and not reveal:
            value = "*" * 8
        table.add_row(key, str(value) if value != "" else "[dim](empty)[/]")
    console.print(table)


@settings_app.command("init")
def settings_init(
    path: Path = typer.Argument(DEFAULT_SETTINGS_PATH, help="Where to write the settings file."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Write a settings file with the defaults and any environment overrides."""
    if path.exists() and not force:
        console.print(f"[red]{path} already exists.[/] Use --force to overwrite it.")
        raise typer.Exit(code=1)
    settings = _load_settings(None)
    save_settings(settings, path)
    console.print(f"[green]Settings written to:[/] {path}")
