"""Turn command-line identifiers or pasted URLs into concrete Canvas targets."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

import httpx

from canvas_cli.client import CanvasClient
from canvas_cli.errors import EmptySelection, NotFound, UrlParseError
from canvas_cli.models import (
    AssignmentTarget,
    ByIds,
    ByUrl,
    FileSetTarget,
    Interactive,
    RemoteFile,
    ResourceReference,
)
from canvas_cli.selector import Selector

logger = logging.getLogger(__name__)

_ASSIGNMENT_PATH_RE = re.compile(r"/courses/(\d+)/assignments/(\d+)(?:/|$)")
_FILES_PATH_RE = re.compile(r"/courses/(\d+)/files(?:/(\d+))?(?:/|$)")


def _url_path(raw_url: str) -> str:
    try:
        url = httpx.URL(raw_url.strip())
    except (httpx.InvalidURL, TypeError) as e:
        raise UrlParseError(f"Not a valid URL: {raw_url!r}") from e
    if url.scheme not in {"http", "https"} or not url.host:
        raise UrlParseError(f"Not an http(s) URL: {raw_url!r}")
    return url.path


def parse_assignment_url(raw_url: str) -> tuple[int, int]:
    """Extract ``(course_id, assignment_id)`` from an assignment URL."""
    m = _ASSIGNMENT_PATH_RE.search(_url_path(raw_url))
    if m is None:
        raise UrlParseError(
            f"Expected a URL like https://<canvas>/courses/<id>/assignments/<id>, got {raw_url!r}"
        )
    return int(m.group(1)), int(m.group(2))


def parse_files_url(raw_url: str) -> tuple[int, int | None]:
    """Extract ``(course_id, file_id or None)`` from a course files URL."""
    m = _FILES_PATH_RE.search(_url_path(raw_url))
    if m is None:
        raise UrlParseError(
            f"Expected a URL like https://<canvas>/courses/<id>/files, got {raw_url!r}"
        )
    file_id = m.group(2)
    return int(m.group(1)), int(file_id) if file_id else None


def reference_from_args(
    course_id: int | None = None,
    target_id: int | None = None,
    url: str | None = None,
) -> ResourceReference:
    """Pick the reference variant for the supplied arguments; a URL wins."""
    if url:
        return ByUrl(url)
    if course_id is not None and target_id is not None:
        return ByIds(course_id, target_id)
    return Interactive(course_id, target_id)


def _select_course(client: CanvasClient, selector: Selector) -> int:
    courses = client.list_courses()
    if not courses:
        raise EmptySelection("No active courses found")
    idx = selector.select_one("Course?", [c.label for c in courses])
    logger.info("Selected course %d", courses[idx].id)
    return courses[idx].id


def resolve_assignment(
    client: CanvasClient,
    selector: Selector,
    reference: ResourceReference,
    uploads_only: bool = True,
) -> AssignmentTarget:
    """Collapse *reference* into a concrete course/assignment pair."""
    if isinstance(reference, ByUrl):
        course_id, assignment_id = parse_assignment_url(reference.raw_url)
        return AssignmentTarget(course_id, assignment_id)
    if isinstance(reference, ByIds):
        return AssignmentTarget(reference.course_id, reference.target_id)
    if not isinstance(reference, Interactive):
        raise TypeError(f"Unknown reference {reference!r}")

    course_id = reference.course_id
    if course_id is None:
        course_id = _select_course(client, selector)
    if reference.target_id is not None:
        return AssignmentTarget(course_id, reference.target_id)

    assignments = client.list_assignments(course_id)
    if uploads_only:
        assignments = [a for a in assignments if a.accepts_uploads]
    if not assignments:
        raise EmptySelection(f"Course {course_id} has no assignments accepting file uploads")
    idx = selector.select_one("Assignment?", [a.label for a in assignments])
    return AssignmentTarget(course_id, assignments[idx].id)


def _pick_files(
    client: CanvasClient,
    selector: Selector,
    files: list[RemoteFile],
    file_ids: Sequence[int],
    course_id: int,
) -> list[RemoteFile]:
    if file_ids:
        by_id = {f.id: f for f in files}
        picked: list[RemoteFile] = []
        for fid in dict.fromkeys(file_ids):
            if fid not in by_id:
                # hidden from the listing but possibly still readable
                logger.info("File %d not listed in course %d, fetching directly", fid, course_id)
                try:
                    by_id[fid] = client.get_file(fid, course_id)
                except NotFound:
                    raise NotFound(f"File {fid} not found in course {course_id}") from None
            picked.append(by_id[fid])
        return picked

    if not files:
        raise EmptySelection(f"Course {course_id} has no files available")
    chosen = selector.select_many("Files?", [f.label for f in files])
    return [files[i] for i in sorted(chosen)]


def resolve_files(
    client: CanvasClient,
    selector: Selector,
    reference: ResourceReference,
    file_ids: Sequence[int] = (),
) -> FileSetTarget:
    """Collapse *reference* into a course and the files to download.

    ``target_id`` of the reference, or a file id embedded in a URL, is
    treated as one more requested file.
    """
    wanted = list(file_ids)
    if isinstance(reference, ByUrl):
        course_id, url_file = parse_files_url(reference.raw_url)
        if url_file is not None:
            wanted.append(url_file)
    elif isinstance(reference, ByIds):
        course_id = reference.course_id
        wanted.append(reference.target_id)
    elif isinstance(reference, Interactive):
        if reference.target_id is not None:
            wanted.append(reference.target_id)
        course_id = reference.course_id
        if course_id is None:
            course_id = _select_course(client, selector)
    else:
        raise TypeError(f"Unknown reference {reference!r}")

    files = client.list_files(course_id)
    return FileSetTarget(course_id, _pick_files(client, selector, files, wanted, course_id))
