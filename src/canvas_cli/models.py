"""Project data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import httpx

from canvas_cli.errors import ValidationFailed

_SIZE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


def human_size(size_bytes: int) -> str:
    """Format a byte count as ``1.5 MiB``."""
    size = float(size_bytes)
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            if unit == "B":
                return f"{int(size)} B"
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size_bytes} B"


def is_valid_token(token: str) -> bool:
    # sent verbatim in an HTTP header
    return token.isascii() and token.isprintable()


@dataclass(frozen=True)
class Credential:
    """Canvas instance URL and access token."""

    instance_url: str
    access_token: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.instance_url or not self.access_token:
            raise ValidationFailed("Instance URL and access token are both required")
        if not is_valid_token(self.access_token):
            raise ValidationFailed("Access token must be printable ASCII")
        try:
            url = httpx.URL(self.instance_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise ValidationFailed(f"Invalid instance URL: {e}") from e
        if url.scheme not in {"http", "https"} or not url.host:
            raise ValidationFailed(
                f"Instance URL must be an http(s) address, got {self.instance_url!r}"
            )

    @property
    def api_base(self) -> str:
        return self.instance_url.rstrip("/")


@dataclass
class UserIdentity:
    """Authenticated Canvas user."""

    id: int
    name: str
    pronouns: str | None = None

    @property
    def display_name(self) -> str:
        if self.pronouns:
            return f"{self.name} ({self.pronouns})"
        return self.name


@dataclass
class Course:
    """Canvas course."""

    id: int
    name: str
    is_favorite: bool = False

    @property
    def label(self) -> str:
        return f"{self.name} ★" if self.is_favorite else self.name


@dataclass
class Assignment:
    """Assignment within a course."""

    id: int
    course_id: int
    name: str
    submission_types: list[str] = field(default_factory=list)
    due_at: datetime | None = None
    submitted: bool = False

    @property
    def accepts_uploads(self) -> bool:
        return "online_upload" in self.submission_types

    @property
    def label(self) -> str:
        label = self.name
        if self.due_at is not None:
            label += f" (due {self.due_at:%Y-%m-%d %H:%M})"
        return f"{label} ✓" if self.submitted else label


@dataclass
class RemoteFile:
    """File stored in a course."""

    id: int
    course_id: int
    name: str
    size_bytes: int
    url: str = ""

    @property
    def label(self) -> str:
        return f"{self.name} ({human_size(self.size_bytes)})"


@dataclass(frozen=True)
class ByIds:
    """Both identifiers given explicitly."""

    course_id: int
    target_id: int


@dataclass(frozen=True)
class ByUrl:
    """Identifiers embedded in a pasted Canvas URL."""

    raw_url: str


@dataclass(frozen=True)
class Interactive:
    """Missing identifiers are picked by the user."""

    course_id: int | None = None
    target_id: int | None = None


ResourceReference = ByIds | ByUrl | Interactive


@dataclass(frozen=True)
class AssignmentTarget:
    course_id: int
    assignment_id: int


@dataclass
class FileSetTarget:
    course_id: int
    files: list[RemoteFile] = field(default_factory=list)


@dataclass
class SubmissionRequest:
    """Files to hand in for one assignment."""

    course_id: int
    assignment_id: int
    files: list[Path]

    def __post_init__(self) -> None:
        if not self.files:
            raise ValidationFailed("At least one file is required for a submission")
        self.files = [Path(p) for p in self.files]


@dataclass
class SubmissionReceipt:
    """Canvas acknowledgement of a submission."""

    submission_id: int
    assignment_id: int
    attempt: int | None = None
    submitted_at: datetime | None = None
    file_ids: list[int] = field(default_factory=list)


@dataclass
class ItemResult:
    """Outcome for one file of a pipeline run."""

    label: str
    ok: bool
    detail: str = ""
    path: Path | None = None


@dataclass
class Report:
    """Per-item results of one submit or download run."""

    operation: str
    items: list[ItemResult] = field(default_factory=list)

    @property
    def failed(self) -> list[ItemResult]:
        return [item for item in self.items if not item.ok]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1
