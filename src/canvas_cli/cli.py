"""CLI for canvas-cli."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from collections.abc import Callable, Mapping

import httpx
from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)
from rich.prompt import Prompt

from canvas_cli import __version__
from canvas_cli._logging import setup_logging
from canvas_cli.client import CanvasClient
from canvas_cli.display import display_failures, display_identity, display_report
from canvas_cli.errors import CanvasCliError, UserCancelled
from canvas_cli.models import Credential, ItemResult, RemoteFile, is_valid_token
from canvas_cli.pipeline import DEFAULT_WORKERS, run_download, run_submission
from canvas_cli.resolver import reference_from_args
from canvas_cli.selector import RichSelector, Selector
from canvas_cli.storage import APP_NAME, CredentialStore, credential_from_env

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)


def _make_client(credential: Credential) -> CanvasClient:
    return CanvasClient(credential)


def validate_url(value: str) -> str:
    """Return *value* if it is an http(s) URL with a host."""
    try:
        url = httpx.URL(value.strip())
    except (httpx.InvalidURL, TypeError) as e:
        raise ValueError(str(e)) from e
    if url.scheme not in {"http", "https"} or not url.host:
        raise ValueError(f"expected an http(s) URL like https://your.instructure.com, got {value!r}")
    return value.strip()


def validate_access_token(value: str) -> str:
    if not value:
        raise ValueError("token cannot be empty")
    if value.strip() != value:
        raise ValueError("token cannot have any leading or trailing whitespace")
    if not is_valid_token(value):
        raise ValueError("token must contain only printable ASCII characters")
    return value


def _arg_type(check: Callable[[str], str]) -> Callable[[str], str]:
    def convert(value: str) -> str:
        try:
            return check(value)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e)) from e

    convert.__name__ = check.__name__
    return convert


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Interact with Canvas LMS from the command line"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config-dir",
        help="Directory holding the stored credential (default: ~/.config/canvas-cli)",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging and tracebacks")
    parser.add_argument("--log-file", help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    auth_p = subparsers.add_parser("auth", help="Authenticate with Canvas")
    auth_p.add_argument(
        "--url",
        "-u",
        type=_arg_type(validate_url),
        help="URL for Canvas instance, https://your.instructure.com",
    )
    auth_p.add_argument(
        "--access-token",
        "-a",
        type=_arg_type(validate_access_token),
        help="Access token (prompted for when omitted)",
    )

    subparsers.add_parser("logout", help="Forget the stored access token")

    submit_p = subparsers.add_parser("submit", help="Submit files to an assignment")
    submit_p.add_argument("--course", "-c", type=int, help="Canvas course ID")
    submit_p.add_argument("--assignment", "-a", type=int, help="Canvas assignment ID")
    submit_p.add_argument(
        "--url", "-u", help="Assignment URL, .../courses/<id>/assignments/<id>"
    )
    submit_p.add_argument(
        "--per-file",
        dest="mode",
        action="store_const",
        const="per-file",
        default="atomic",
        help="Submit each file separately instead of as one submission",
    )
    submit_p.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    submit_p.add_argument("files", nargs="+", help="File(s) to submit")

    download_p = subparsers.add_parser("download", help="Download files from a course")
    download_p.add_argument("--course", "-c", type=int, help="Canvas course ID")
    download_p.add_argument("--url", "-u", help="Course files URL, .../courses/<id>/files")
    download_p.add_argument("--output", "-o", default=".", help="Output directory (default: .)")
    download_p.add_argument(
        "--workers",
        "-j",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Parallel downloads (default: {DEFAULT_WORKERS})",
    )
    download_p.add_argument("file_ids", nargs="*", type=int, help="Canvas file IDs")

    return parser


def _prompt_valid(label: str, check: Callable[[str], str], password: bool = False) -> str:
    while True:
        try:
            value = Prompt.ask(label, console=err_console, password=password)
        except (EOFError, KeyboardInterrupt):
            raise UserCancelled("Authentication aborted") from None
        try:
            return check(value)
        except ValueError as e:
            err_console.print(f"[red]{escape(str(e))}[/red]")


def _run_auth(args: argparse.Namespace, store: CredentialStore) -> int:
    url = args.url or _prompt_valid("Canvas instance URL", validate_url)
    token = args.access_token or _prompt_valid(
        "Access token", validate_access_token, password=True
    )

    with err_console.status("[bold blue]Test query with authentication..."):
        identity = store.save(url, token)

    err_console.print("[green]✓[/green] Test query successful")
    display_identity(identity, url, console)
    return 0


def _load_credential(store: CredentialStore, environ: Mapping[str, str] | None) -> Credential:
    credential = credential_from_env(environ)
    if credential is not None:
        logger.info("Using credential from environment")
        return credential
    return store.load()


def _print_submitted(item: ItemResult) -> None:
    mark = "[green]✓[/green]" if item.ok else "[red]✗[/red]"
    err_console.print(f"{mark} {escape(item.label)}")


def _run_submit(args: argparse.Namespace, client: CanvasClient, selector: Selector) -> int:
    reference = reference_from_args(args.course, args.assignment, args.url)
    report = run_submission(
        client,
        selector,
        reference,
        args.files,
        mode=args.mode,
        assume_yes=args.yes,
        on_progress=_print_submitted,
    )
    display_report(report, console)
    display_failures(report, err_console)
    return report.exit_code


class _DownloadProgress:
    """Per-file byte progress bars, created on first data."""

    def __init__(self, target: Console) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=target,
        )
        self._tasks: dict[int, TaskID] = {}
        self._lock = threading.Lock()
        self._started = False

    def on_chunk(self, remote: RemoteFile, size: int) -> None:
        with self._lock:
            if not self._started:
                self._progress.start()
                self._started = True
            task_id = self._tasks.get(remote.id)
            if task_id is None:
                task_id = self._progress.add_task(remote.name, total=remote.size_bytes or None)
                self._tasks[remote.id] = task_id
        self._progress.advance(task_id, size)

    def __enter__(self) -> _DownloadProgress:
        return self

    def __exit__(self, *args: object) -> None:
        if self._started:
            self._progress.stop()


def _run_download(args: argparse.Namespace, client: CanvasClient, selector: Selector) -> int:
    reference = reference_from_args(args.course, None, args.url)
    with _DownloadProgress(err_console) as progress:
        report = run_download(
            client,
            selector,
            reference,
            file_ids=args.file_ids,
            output_dir=args.output,
            workers=args.workers,
            on_chunk=progress.on_chunk,
        )
    display_report(report, console)
    display_failures(report, err_console)
    return report.exit_code


def run(
    argv: list[str] | None = None,
    selector: Selector | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run the CLI and return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    store = CredentialStore(args.config_dir, client_factory=_make_client)
    try:
        setup_logging(logging.DEBUG if args.debug else logging.WARNING, args.log_file)
        if args.command == "auth":
            return _run_auth(args, store)

        if args.command == "logout":
            store.clear()
            console.print(f"[green]✓[/green] Removed stored credential ({store.path})")
            return 0

        credential = _load_credential(store, environ)
        selector = selector or RichSelector(err_console)
        with _make_client(credential) as client:
            if args.command == "submit":
                return _run_submit(args, client, selector)
            return _run_download(args, client, selector)
    except UserCancelled:
        err_console.print("[yellow]Cancelled, nothing was changed.[/yellow]")
        return 0
    except CanvasCliError as e:
        logger.debug("Command failed", exc_info=True)
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        return 1
    except OSError as e:
        logger.debug("Local I/O failed", exc_info=True)
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
        return 1
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted.[/yellow]")
        return 130


def main() -> None:
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
