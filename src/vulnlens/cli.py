"""CLI entry point — ``vulnlens analyze``, ``fetch``, ``serve``, ``config``."""

from __future__ import annotations

# Phase 1: Singleton logging, before any transitive litellm imports
from vulnlens.logging_config import setup_logging

setup_logging("WARNING")

import argparse  # noqa: E402
import asyncio  # noqa: E402
import json  # noqa: E402
import sys  # noqa: E402

from vulnlens import __version__  # noqa: E402
from vulnlens.analysis.orchestrator import (  # noqa: E402
    BatchOrchestrator,
    RunResult,
)
from vulnlens.analysis.state import RunState  # noqa: E402
from vulnlens.analysis.submission import SubmissionError  # noqa: E402
from vulnlens.config import Settings  # noqa: E402
from vulnlens.constants import (  # noqa: E402
    SEVERITY_ORDER,
    ExplanationLevel,
    RunOutcome,
)
from vulnlens.credentials import (  # noqa: E402
    GITHUB_TOKEN,
    KNOWN_KEYS,
    LLM_API_KEY,
    CredentialStore,
    resolve_credential,
)
from vulnlens.ingestion.github import (  # noqa: E402
    GitHubFetcher,
    RepositoryFetchError,
)
from vulnlens.ingestion.local_files import load_code_files  # noqa: E402
from vulnlens.logger import RunLogger  # noqa: E402
from vulnlens.logging_config import (  # noqa: E402
    apply_log_level,
    cleanup_third_party_handlers,
)
from vulnlens.streaming.events import CodeFile  # noqa: E402

# Phase 2: Clear litellm's duplicate handlers after all imports
cleanup_third_party_handlers()

EXIT_CODES: dict[RunOutcome, int] = {
    RunOutcome.COMPLETED: 0,
    RunOutcome.FAILED: 1,
    RunOutcome.REJECTED: 2,
    RunOutcome.CANCELLED: 130,
}


def main() -> None:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.version:
        print(f"vulnlens {__version__}")
        return

    if args.command == "analyze":
        _run_analyze(args)
    elif args.command == "fetch":
        _run_fetch(args)
    elif args.command == "serve":
        _run_serve(args)
    elif args.command == "config":
        _run_config(args)
    else:
        parser.print_help()


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vulnlens",
        description="Streaming LLM security review for source code.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )

    sub = parser.add_subparsers(dest="command")

    analyze = sub.add_parser(
        "analyze",
        help="Analyze local files or a GitHub repository",
    )
    analyze.add_argument(
        "paths",
        nargs="*",
        help="Files or directories to analyze",
    )
    analyze.add_argument(
        "--repo",
        "-r",
        default=None,
        help="GitHub repository URL to fetch and analyze",
    )
    analyze.add_argument(
        "--level",
        "-l",
        choices=[lvl.value for lvl in ExplanationLevel],
        default=ExplanationLevel.BEGINNER.value,
        help="Explanation level (default: beginner)",
    )
    analyze.add_argument(
        "--api-key",
        default=None,
        help="LLM API key (default: stored credential or LLM_API_KEY)",
    )
    analyze.add_argument(
        "--json",
        action="store_true",
        help="Print the final run state as JSON",
    )
    analyze.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Print batch progress; -v logs at INFO, -vv at DEBUG",
    )

    fetch = sub.add_parser(
        "fetch",
        help="List the files a GitHub repository would contribute",
    )
    fetch.add_argument("url", help="GitHub repository URL")

    serve = sub.add_parser("serve", help="Start the HTTP API")
    serve.add_argument(
        "--host",
        default="127.0.0.1",
        help="Bind address (default: 127.0.0.1)",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port (default: 8000)",
    )

    config = sub.add_parser("config", help="Manage stored credentials")
    config_sub = config.add_subparsers(dest="config_command")
    set_parser = config_sub.add_parser("set", help="Store a credential")
    set_parser.add_argument("key", choices=KNOWN_KEYS)
    set_parser.add_argument("value")
    clear_parser = config_sub.add_parser(
        "clear", help="Remove a stored credential"
    )
    clear_parser.add_argument("key", choices=KNOWN_KEYS)
    config_sub.add_parser("show", help="Show which credentials are set")

    return parser


def cli_log_level(verbose: int, settings: Settings) -> str:
    """Root level for a CLI run.

    ``-v`` and ``-vv`` win; otherwise an explicit ``LOG_LEVEL`` applies,
    and the CLI stays at WARNING so reports are not interleaved with
    INFO records.
    """
    if verbose >= 2:
        return "DEBUG"
    if verbose == 1:
        return "INFO"
    if "log_level" in settings.model_fields_set:
        return settings.log_level
    return "WARNING"


def _progress_printer(verbose: int):  # noqa: ANN202
    """Snapshot listener printing one line per batch transition."""
    last_batch = 0

    def on_snapshot(state: RunState) -> None:
        nonlocal last_batch
        stats = state.stats
        if not verbose or stats.current_batch == last_batch:
            return
        last_batch = stats.current_batch
        print(
            f"  batch {stats.current_batch}/{stats.total_batches} "
            f"({stats.files_scanned}/{stats.total_files} files, "
            f"{stats.vulnerabilities_found} findings)"
        )

    return on_snapshot


def format_report(result: RunResult) -> str:
    """Plain-text summary of a run, most severe findings first."""
    state = result.state
    stats = state.stats
    lines = [
        f"{result.outcome.upper()}: {result.message}",
        f"Files scanned: {stats.files_scanned}/{stats.total_files}"
        f"  Lines: {stats.lines_scanned}"
        f"  Batches: {stats.current_batch}/{stats.total_batches}",
    ]
    if state.overall_risk is not None:
        lines.append(f"Overall risk: {state.overall_risk}")
    breakdown = stats.severity_breakdown
    lines.append(
        "Severity: "
        + ", ".join(
            f"{sev}={getattr(breakdown, sev)}"
            for sev in reversed(SEVERITY_ORDER)
        )
    )
    ranked = sorted(
        state.findings,
        key=lambda f: -SEVERITY_ORDER.index(f.severity),
    )
    for finding in ranked:
        where = f"{finding.file}:{finding.line}"
        lines.append(
            f"  [{finding.severity.upper()}] {where} {finding.title}"
        )
        if finding.cwe_reference:
            lines.append(f"      {finding.cwe_reference}")
    if result.error:
        lines.append(f"Error: {result.error}")
    return "\n".join(lines)


async def _collect_files(
    args: argparse.Namespace,
    settings: Settings,
    store: CredentialStore,
) -> list[CodeFile]:
    files: list[CodeFile] = []
    if args.paths:
        files.extend(
            load_code_files(
                args.paths,
                max_file_bytes=settings.max_upload_bytes,
                skip_directories=settings.skip_directories,
            )
        )
    if args.repo:
        token = resolve_credential(
            store, GITHUB_TOKEN, settings.github_token
        )
        fetched = await GitHubFetcher.from_settings(settings).fetch(
            args.repo,
            token,
            on_progress=(lambda msg: print(f"  {msg}"))
            if args.verbose
            else None,
        )
        print(
            f"Fetched {fetched.summary.total_files} files "
            f"from {fetched.summary.repository}"
        )
        files.extend(fetched.files)
    return files


async def _analyze(
    args: argparse.Namespace,
    settings: Settings,
    store: CredentialStore,
) -> RunResult:
    files = await _collect_files(args, settings, store)
    credential = args.api_key or resolve_credential(
        store, LLM_API_KEY, settings.llm_api_key
    )
    orchestrator = BatchOrchestrator.from_settings(
        settings,
        run_logger=RunLogger(
            log_dir=settings.log_dir, level=settings.log_level
        ),
    )
    orchestrator.subscribe(_progress_printer(args.verbose))
    return await orchestrator.run(
        files, credential, ExplanationLevel(args.level)
    )


def _run_analyze(args: argparse.Namespace) -> None:
    """Execute the analyze command."""
    if not args.paths and not args.repo:
        print(
            "Error: give at least one path or --repo",
            file=sys.stderr,
        )
        sys.exit(2)

    settings = Settings()
    apply_log_level(cli_log_level(args.verbose, settings))
    store = CredentialStore(settings.credentials_path)

    try:
        result = asyncio.run(_analyze(args, settings, store))
    except (FileNotFoundError, SubmissionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except RepositoryFetchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Analysis cancelled", file=sys.stderr)
        sys.exit(EXIT_CODES[RunOutcome.CANCELLED])

    if args.json:
        print(
            json.dumps(
                {
                    "outcome": result.outcome,
                    "message": result.message,
                    "error": result.error,
                    "state": result.state.model_dump(
                        mode="json", by_alias=True
                    ),
                },
                indent=2,
            )
        )
    else:
        print(format_report(result))
    code = EXIT_CODES[result.outcome]
    if code:
        sys.exit(code)


def _run_fetch(args: argparse.Namespace) -> None:
    """List the supported files of a GitHub repository."""
    settings = Settings()
    store = CredentialStore(settings.credentials_path)
    token = resolve_credential(store, GITHUB_TOKEN, settings.github_token)
    try:
        fetched = asyncio.run(
            GitHubFetcher.from_settings(settings).fetch(args.url, token)
        )
    except RepositoryFetchError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(
        f"{fetched.summary.repository}: "
        f"{fetched.summary.total_files} files"
    )
    for f in fetched.files:
        print(f"  {f.name} ({len(f.content.splitlines())} lines)")


def _run_serve(args: argparse.Namespace) -> None:
    """Start the HTTP API under uvicorn."""
    import uvicorn

    uvicorn.run("vulnlens.main:app", host=args.host, port=args.port)


def _run_config(args: argparse.Namespace) -> None:
    """Manage stored credentials."""
    settings = Settings()
    store = CredentialStore(settings.credentials_path)
    if args.config_command == "set":
        store.set(args.key, args.value)
        print(f"Stored {args.key}")
    elif args.config_command == "clear":
        removed = store.delete(args.key)
        print(f"Removed {args.key}" if removed else f"{args.key} not set")
    else:
        for key, present in store.present().items():
            print(f"{key}: {'set' if present else 'not set'}")


if __name__ == "__main__":
    main()
