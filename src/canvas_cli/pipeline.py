"""End-to-end submit and download runs."""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from canvas_cli.client import CanvasClient
from canvas_cli.errors import CanvasCliError, UserCancelled, ValidationFailed
from canvas_cli.models import (
    ItemResult,
    RemoteFile,
    Report,
    ResourceReference,
    SubmissionRequest,
)
from canvas_cli.resolver import resolve_assignment, resolve_files
from canvas_cli.selector import Selector

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4
SUBMISSION_MODES = ("atomic", "per-file")

ProgressFn = Callable[[ItemResult], None]
ChunkFn = Callable[[RemoteFile, int], None]


class Stage(enum.Enum):
    RESOLVING = "resolving"
    CONFIRMING = "confirming"
    EXECUTING = "executing"
    REPORTING = "reporting"


def _enter(stage: Stage, operation: str) -> None:
    logger.debug("%s: %s", operation, stage.value)


def check_submission_files(paths: Sequence[Path]) -> None:
    """Fail unless every path is a readable, non-empty regular file."""
    problems: list[str] = []
    for path in paths:
        if not path.exists():
            problems.append(f"{path}: no such file")
        elif not path.is_file():
            problems.append(f"{path}: not a regular file")
        elif not os.access(path, os.R_OK):
            problems.append(f"{path}: not readable")
        elif path.stat().st_size == 0:
            problems.append(f"{path}: file is empty")
    if problems:
        raise ValidationFailed("Cannot submit:\n  " + "\n  ".join(problems))


def check_output_dir(output_dir: Path) -> None:
    """Create *output_dir* if needed and make sure it is writable."""
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ValidationFailed(f"Cannot create output directory {output_dir}: {e}") from e
    if not output_dir.is_dir() or not os.access(output_dir, os.W_OK):
        raise ValidationFailed(f"Output directory {output_dir} is not writable")


def run_submission(
    client: CanvasClient,
    selector: Selector,
    reference: ResourceReference,
    files: Sequence[Path | str],
    mode: str = "atomic",
    assume_yes: bool = False,
    on_progress: ProgressFn | None = None,
) -> Report:
    """Resolve the assignment, check the files and submit them.

    In ``atomic`` mode every file goes into one Canvas submission and
    shares its outcome. In ``per-file`` mode each file is its own
    submission and succeeds or fails independently.
    """
    if mode not in SUBMISSION_MODES:
        raise ValueError(f"Unknown submission mode {mode!r}")
    # local checks run before any network call
    paths = [Path(p) for p in files]
    if not paths:
        raise ValidationFailed("At least one file is required for a submission")
    check_submission_files(paths)

    _enter(Stage.RESOLVING, "submit")
    target = resolve_assignment(client, selector, reference)
    request = SubmissionRequest(target.course_id, target.assignment_id, paths)

    _enter(Stage.CONFIRMING, "submit")
    if not assume_yes:
        names = ", ".join(p.name for p in request.files)
        question = (
            f"Submit {len(request.files)} file(s) ({names}) to assignment "
            f"{request.assignment_id} in course {request.course_id}?"
        )
        if not selector.confirm(question):
            raise UserCancelled("Submission cancelled")

    _enter(Stage.EXECUTING, "submit")
    report = Report("submit")
    if mode == "atomic":
        try:
            receipt = client.submit(request.course_id, request.assignment_id, request.files)
        except CanvasCliError as e:
            logger.debug("Submission failed", exc_info=True)
            results = [ItemResult(p.name, False, str(e), p) for p in request.files]
        else:
            detail = f"submission {receipt.submission_id}"
            if receipt.attempt is not None:
                detail += f", attempt {receipt.attempt}"
            results = [ItemResult(p.name, True, detail, p) for p in request.files]
        for result in results:
            report.items.append(result)
            if on_progress is not None:
                on_progress(result)
    else:
        for path in request.files:
            try:
                receipt = client.submit(request.course_id, request.assignment_id, [path])
            except CanvasCliError as e:
                logger.debug("Submission of %s failed", path, exc_info=True)
                result = ItemResult(path.name, False, str(e), path)
            else:
                result = ItemResult(path.name, True, f"submission {receipt.submission_id}", path)
            report.items.append(result)
            if on_progress is not None:
                on_progress(result)

    _enter(Stage.REPORTING, "submit")
    return report


def _destinations(files: Sequence[RemoteFile], output_dir: Path) -> list[Path]:
    seen: dict[str, int] = {}
    for f in files:
        seen[f.name] = seen.get(f.name, 0) + 1

    paths: list[Path] = []
    for f in files:
        name = Path(f.name).name or str(f.id)
        if seen[f.name] > 1:
            stem, suffix = os.path.splitext(name)
            name = f"{stem} ({f.id}){suffix}"
        paths.append(output_dir / name)
    return paths


def download_files(
    client: CanvasClient,
    files: Sequence[RemoteFile],
    output_dir: Path,
    workers: int = DEFAULT_WORKERS,
    on_progress: ProgressFn | None = None,
    on_chunk: ChunkFn | None = None,
) -> Report:
    """Download *files* concurrently; one failure does not stop the rest."""
    destinations = _destinations(files, output_dir)

    def fetch(remote: RemoteFile, dest: Path) -> ItemResult:
        def chunk_cb(size: int) -> None:
            if on_chunk is not None:
                on_chunk(remote, size)

        try:
            written = client.download(remote, dest, on_chunk=chunk_cb)
        except CanvasCliError as e:
            logger.debug("Download of %s failed", remote.name, exc_info=True)
            result = ItemResult(remote.label, False, str(e), dest)
        else:
            result = ItemResult(remote.label, True, f"{written} bytes", dest)
        if on_progress is not None:
            on_progress(result)
        return result

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        results = list(pool.map(fetch, files, destinations))
    return Report("download", results)


def run_download(
    client: CanvasClient,
    selector: Selector,
    reference: ResourceReference,
    file_ids: Sequence[int] = (),
    output_dir: Path | str = ".",
    workers: int = DEFAULT_WORKERS,
    on_progress: ProgressFn | None = None,
    on_chunk: ChunkFn | None = None,
) -> Report:
    """Resolve the course files, check the output directory and fetch them."""
    _enter(Stage.RESOLVING, "download")
    target = resolve_files(client, selector, reference, file_ids)

    _enter(Stage.CONFIRMING, "download")
    output = Path(output_dir)
    check_output_dir(output)

    _enter(Stage.EXECUTING, "download")
    report = download_files(client, target.files, output, workers, on_progress, on_chunk)

    _enter(Stage.REPORTING, "download")
    return report
