"""canvas_cli: Interact with Canvas LMS from the command line."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("canvas-cli")
except PackageNotFoundError:
    __version__ = "0+unknown"

from canvas_cli.client import CanvasClient
from canvas_cli.errors import (
    AuthenticationFailed,
    CanvasCliError,
    EmptySelection,
    LocalFileError,
    NotAuthenticated,
    NotFound,
    ProtocolError,
    TransientError,
    UrlParseError,
    UserCancelled,
    ValidationFailed,
)
from canvas_cli.models import (
    Assignment,
    Course,
    Credential,
    RemoteFile,
    Report,
    SubmissionReceipt,
    UserIdentity,
)
from canvas_cli.pipeline import run_download, run_submission
from canvas_cli.resolver import parse_assignment_url, resolve_assignment, resolve_files
from canvas_cli.storage import CredentialStore

__all__ = [
    "Assignment",
    "AuthenticationFailed",
    "CanvasClient",
    "CanvasCliError",
    "Course",
    "Credential",
    "CredentialStore",
    "EmptySelection",
    "LocalFileError",
    "NotAuthenticated",
    "NotFound",
    "ProtocolError",
    "RemoteFile",
    "Report",
    "SubmissionReceipt",
    "TransientError",
    "UrlParseError",
    "UserCancelled",
    "UserIdentity",
    "ValidationFailed",
    "__version__",
    "parse_assignment_url",
    "resolve_assignment",
    "resolve_files",
    "run_download",
    "run_submission",
]
