"""Error types raised by canvas-cli."""

from __future__ import annotations


class CanvasCliError(Exception):
    """Base error with a message safe to show to the user."""


class NotAuthenticated(CanvasCliError):
    """No usable stored credential."""


class AuthenticationFailed(CanvasCliError):
    """Canvas rejected the access token."""


class UrlParseError(CanvasCliError):
    """URL does not point at a known Canvas resource."""


class NotFound(CanvasCliError):
    """Remote resource does not exist."""


class ValidationFailed(CanvasCliError):
    """Input rejected locally or by Canvas."""


class TransientError(CanvasCliError):
    """Network error, timeout or server-side failure."""


class ProtocolError(CanvasCliError):
    """Canvas returned a payload of unexpected shape."""


class EmptySelection(CanvasCliError):
    """Nothing to choose from."""


class UserCancelled(CanvasCliError):
    """User aborted a prompt."""


class LocalFileError(CanvasCliError):
    """Reading or writing a local file failed."""
