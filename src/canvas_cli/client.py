"""HTTP client for the Canvas REST API."""

from __future__ import annotations

import logging
import mimetypes
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx

from canvas_cli.errors import (
    AuthenticationFailed,
    LocalFileError,
    NotFound,
    ProtocolError,
    TransientError,
    ValidationFailed,
)
from canvas_cli.models import (
    Assignment,
    Course,
    Credential,
    RemoteFile,
    SubmissionReceipt,
    UserIdentity,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF = 1.0

_RETRY_STATUSES = {429}


def _parse_time(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ProtocolError(f"Invalid timestamp in response: {value!r}") from e


def _is_submitted(submission: object) -> bool:
    if not isinstance(submission, dict):
        return False
    if submission.get("submitted_at"):
        return True
    return submission.get("workflow_state") in {"submitted", "pending_review", "graded"}


def _require(payload: object, key: str, kind: type | tuple[type, ...], what: str) -> Any:
    if not isinstance(payload, dict):
        raise ProtocolError(f"Expected an object for {what}, got {type(payload).__name__}")
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ProtocolError(f"Missing or invalid '{key}' in {what}")
    return value


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason_phrase or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0]
            if isinstance(first, dict) and "message" in first:
                return str(first["message"])
        if isinstance(errors, dict):
            return "; ".join(f"{k}: {v}" for k, v in errors.items())
        if "message" in body:
            return str(body["message"])
    return resp.reason_phrase or f"HTTP {resp.status_code}"


class CanvasClient:
    """Authenticated Canvas client."""

    def __init__(
        self,
        credential: Credential,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff: float = DEFAULT_BACKOFF,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.credential = credential
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._sleep = sleep
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.credential.access_token}"}

    def _url(self, path: str) -> str:
        return f"{self.credential.api_base}{API_PREFIX}{path}"

    def _send(self, method: str, url: str, *, auth: bool, **kwargs: Any) -> httpx.Response:
        """Send one request, retrying transient failures."""
        if auth:
            kwargs["headers"] = {**kwargs.get("headers", {}), **self._auth_headers}

        for attempt in range(1, self.max_attempts + 1):
            try:
                resp = self._client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                reason = f"timed out ({e.__class__.__name__})"
            except httpx.TransportError as e:
                reason = f"network error: {e}"
            else:
                if resp.status_code < 500 and resp.status_code not in _RETRY_STATUSES:
                    return self._check_status(resp)
                reason = f"server returned HTTP {resp.status_code}"

            if attempt == self.max_attempts:
                raise TransientError(
                    f"{method} {url} failed after {attempt} attempts: {reason}"
                )
            delay = self.backoff * 2 ** (attempt - 1)
            logger.warning(
                "%s %s %s, retrying in %.1fs (attempt %d/%d)",
                method,
                url,
                reason,
                delay,
                attempt,
                self.max_attempts,
            )
            self._sleep(delay)

        raise AssertionError("unreachable")

    @staticmethod
    def _check_status(resp: httpx.Response) -> httpx.Response:
        status = resp.status_code
        if status in (401, 403):
            raise AuthenticationFailed(
                f"Canvas rejected the access token ({status}): {_error_message(resp)}"
            )
        if status == 404:
            raise NotFound(f"Not found: {resp.request.url.path}")
        if 400 <= status < 500:
            raise ValidationFailed(
                f"Canvas rejected the request ({status}): {_error_message(resp)}"
            )
        return resp

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return self._send(method, self._url(path), auth=True, **kwargs)

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ProtocolError(
                f"Expected JSON from {resp.request.url.path}, got "
                f"{resp.headers.get('content-type', 'unknown content')}"
            ) from e

    def _get_all(self, path: str, params: dict[str, Any] | None = None) -> list[Any]:
        """Return every item of a paginated list endpoint."""
        items: list[Any] = []
        resp = self._request("GET", path, params={"per_page": PAGE_SIZE, **(params or {})})
        while True:
            page = self._json(resp)
            if not isinstance(page, list):
                raise ProtocolError(f"Expected a list from {path}")
            items.extend(page)
            next_url = resp.links.get("next", {}).get("url")
            if not next_url:
                break
            resp = self._send("GET", next_url, auth=True)
        return items

    def whoami(self) -> UserIdentity:
        """Return the user owning the access token."""
        payload = self._json(self._request("GET", "/users/self"))
        pronouns = payload.get("pronouns") if isinstance(payload, dict) else None
        return UserIdentity(
            id=_require(payload, "id", int, "user"),
            name=_require(payload, "name", str, "user"),
            pronouns=pronouns if isinstance(pronouns, str) and pronouns else None,
        )

    def list_courses(self) -> list[Course]:
        """Return active courses in server order."""
        raw = self._get_all(
            "/courses", params={"include[]": ["favorites", "concluded"]}
        )
        courses: list[Course] = []
        for item in raw:
            if isinstance(item, dict) and item.get("access_restricted_by_date"):
                continue
            if isinstance(item, dict) and item.get("concluded"):
                continue
            courses.append(
                Course(
                    id=_require(item, "id", int, "course"),
                    name=_require(item, "name", str, "course"),
                    is_favorite=bool(item.get("is_favorite", False)),
                )
            )
        logger.debug("Fetched %d courses", len(courses))
        return courses

    def list_assignments(self, course_id: int) -> list[Assignment]:
        """Return assignments of *course_id* in server order."""
        raw = self._get_all(
            f"/courses/{course_id}/assignments", params={"include[]": ["submission"]}
        )
        assignments: list[Assignment] = []
        for item in raw:
            assignment_id = _require(item, "id", int, "assignment")
            types = item.get("submission_types", [])
            owner = item.get("course_id")
            assignments.append(
                Assignment(
                    id=assignment_id,
                    course_id=owner if isinstance(owner, int) else course_id,
                    name=_require(item, "name", str, "assignment"),
                    submission_types=[str(t) for t in types] if isinstance(types, list) else [],
                    due_at=_parse_time(item.get("due_at")),
                    submitted=_is_submitted(item.get("submission")),
                )
            )
        logger.debug("Fetched %d assignments for course %d", len(assignments), course_id)
        return assignments

    @staticmethod
    def _remote_file(item: object, course_id: int) -> RemoteFile:
        name = item.get("display_name") if isinstance(item, dict) else None
        return RemoteFile(
            id=_require(item, "id", int, "file"),
            course_id=course_id,
            name=name if isinstance(name, str) and name else _require(item, "filename", str, "file"),
            size_bytes=_require(item, "size", int, "file"),
            url=_require(item, "url", str, "file"),
        )

    def list_files(self, course_id: int) -> list[RemoteFile]:
        """Return files of *course_id* in server order."""
        raw = self._get_all(f"/courses/{course_id}/files")
        files = [self._remote_file(item, course_id) for item in raw]
        logger.debug("Fetched %d files for course %d", len(files), course_id)
        return files

    def get_file(self, file_id: int, course_id: int = 0) -> RemoteFile:
        """Return metadata for a single file."""
        payload = self._json(self._request("GET", f"/files/{file_id}"))
        return self._remote_file(payload, course_id)

    def _upload_file(self, course_id: int, assignment_id: int, path: Path) -> int:
        """Upload *path* for a submission and return the Canvas file id."""
        try:
            content = path.read_bytes()
        except OSError as e:
            raise LocalFileError(f"Cannot read {path}: {e.strerror or e}") from e
        size = len(content)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        preflight = self._json(
            self._request(
                "POST",
                f"/courses/{course_id}/assignments/{assignment_id}/submissions/self/files",
                data={"name": path.name, "size": str(size), "content_type": content_type},
            )
        )
        upload_url = _require(preflight, "upload_url", str, "upload preflight")
        params = preflight.get("upload_params") or {}
        if not isinstance(params, dict):
            raise ProtocolError("Invalid 'upload_params' in upload preflight")

        logger.debug("Uploading %s (%d bytes)", path, size)
        # upload_url may live on a storage host; the token must not go there
        resp = self._send(
            "POST",
            upload_url,
            auth=False,
            data={str(k): str(v) for k, v in params.items()},
            files={"file": (path.name, content, content_type)},
            follow_redirects=False,
        )

        if resp.is_redirect:
            location = resp.headers.get("location", "")
            if not location:
                raise ProtocolError("Upload redirect without a location")
            resp = self._send("GET", location, auth=True)
        return _require(self._json(resp), "id", int, "uploaded file")

    def submit(
        self, course_id: int, assignment_id: int, paths: Sequence[Path | str]
    ) -> SubmissionReceipt:
        """Upload *paths* and submit them as one online_upload submission."""
        if not paths:
            raise ValidationFailed("At least one file is required for a submission")
        file_ids = [self._upload_file(course_id, assignment_id, Path(p)) for p in paths]
        payload = self._json(
            self._request(
                "POST",
                f"/courses/{course_id}/assignments/{assignment_id}/submissions",
                json={
                    "submission": {
                        "submission_type": "online_upload",
                        "file_ids": file_ids,
                    }
                },
            )
        )
        submission_id = _require(payload, "id", int, "submission")
        attempt = payload.get("attempt")
        receipt = SubmissionReceipt(
            submission_id=submission_id,
            assignment_id=assignment_id,
            attempt=attempt if isinstance(attempt, int) else None,
            submitted_at=_parse_time(payload.get("submitted_at")),
            file_ids=file_ids,
        )
        logger.info(
            "Submitted %d file(s) to assignment %d (submission %d)",
            len(file_ids),
            assignment_id,
            receipt.submission_id,
        )
        return receipt

    def _stream_to_file(
        self, url: str, dest: Path, on_chunk: Callable[[int], None] | None
    ) -> int:
        written = 0
        for attempt in range(1, self.max_attempts + 1):
            written = 0
            try:
                with self._client.stream("GET", url, headers=self._auth_headers) as resp:
                    if resp.status_code < 500 and resp.status_code not in _RETRY_STATUSES:
                        if resp.status_code >= 400:
                            resp.read()
                        self._check_status(resp)
                        with dest.open("wb") as f:
                            for chunk in resp.iter_bytes():
                                f.write(chunk)
                                written += len(chunk)
                                if on_chunk is not None:
                                    on_chunk(len(chunk))
                        return written
                    reason = f"server returned HTTP {resp.status_code}"
            except httpx.TimeoutException as e:
                reason = f"timed out ({e.__class__.__name__})"
            except httpx.TransportError as e:
                reason = f"network error: {e}"

            if written and on_chunk is not None:
                # the next attempt starts from zero
                on_chunk(-written)
            if attempt == self.max_attempts:
                raise TransientError(
                    f"Download of {dest.name} failed after {attempt} attempts: {reason}"
                )
            delay = self.backoff * 2 ** (attempt - 1)
            logger.warning(
                "Download of %s %s, retrying in %.1fs (attempt %d/%d)",
                dest.name,
                reason,
                delay,
                attempt,
                self.max_attempts,
            )
            self._sleep(delay)

        raise AssertionError("unreachable")

    def download(
        self,
        remote_file: RemoteFile,
        destination: Path | str,
        on_chunk: Callable[[int], None] | None = None,
    ) -> int:
        """Download *remote_file* to *destination* and return bytes written."""
        output = Path(destination)
        tmp_path = output.with_name(output.name + ".part")
        url = remote_file.url or self._url(f"/files/{remote_file.id}/download")

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            written = self._stream_to_file(url, tmp_path, on_chunk)
            tmp_path.replace(output)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise LocalFileError(f"Cannot write {output}: {e.strerror or e}") from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        logger.debug("Downloaded %s (%d bytes) -> %s", remote_file.name, written, output)
        return written

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> CanvasClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
