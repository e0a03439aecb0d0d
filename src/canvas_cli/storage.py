"""Credential persistence."""

from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Callable, Mapping
from pathlib import Path

from canvas_cli.client import CanvasClient
from canvas_cli.errors import (
    AuthenticationFailed,
    CanvasCliError,
    NotAuthenticated,
    ValidationFailed,
)
from canvas_cli.models import Credential, UserIdentity

logger = logging.getLogger(__name__)

APP_NAME = "canvas-cli"
CONFIG_FILE = "config.json"
ENV_BASE_URL = "CANVAS_BASE_URL"
ENV_ACCESS_TOKEN = "CANVAS_ACCESS_TOKEN"

ClientFactory = Callable[[Credential], CanvasClient]


def default_config_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Return the per-user configuration directory."""
    env = os.environ if environ is None else environ
    if sys.platform == "win32" and env.get("APPDATA"):
        return Path(env["APPDATA"]) / APP_NAME
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def credential_from_env(environ: Mapping[str, str] | None = None) -> Credential | None:
    """Return a credential from CANVAS_BASE_URL/CANVAS_ACCESS_TOKEN, if both are set."""
    env = os.environ if environ is None else environ
    url = env.get(ENV_BASE_URL, "")
    token = env.get(ENV_ACCESS_TOKEN, "")
    if not url or not token:
        return None
    return Credential(url, token)


class CredentialStore:
    """Single stored (instance URL, access token) record."""

    def __init__(
        self,
        config_dir: Path | str | None = None,
        client_factory: ClientFactory = CanvasClient,
    ) -> None:
        base = Path(config_dir) if config_dir is not None else default_config_dir()
        self.path = base / CONFIG_FILE
        self._client_factory = client_factory

    def save(self, instance_url: str, access_token: str) -> UserIdentity:
        """Validate the pair against Canvas, then persist it.

        Nothing is written unless Canvas accepts the token. The previous record,
        if any, is replaced as a whole.
        """
        try:
            credential = Credential(instance_url, access_token)
        except ValidationFailed as e:
            raise AuthenticationFailed(str(e)) from e

        try:
            with self._client_factory(credential) as client:
                identity = client.whoami()
        except AuthenticationFailed:
            raise
        except CanvasCliError as e:
            raise AuthenticationFailed(f"Could not verify the access token: {e}") from e

        self._write(credential)
        logger.info("Stored credential for %s in %s", credential.instance_url, self.path)
        return identity

    def _write(self, credential: Credential) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "url": credential.instance_url,
            "access_token": credential.access_token,
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp_path.write_text(
                json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
            )
            try:
                tmp_path.chmod(0o600)
            except OSError:
                logger.debug("Could not restrict permissions on %s", tmp_path, exc_info=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def load(self) -> Credential:
        """Return the stored credential."""
        hint = f"Run '{APP_NAME} auth' first"
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise NotAuthenticated(f"{APP_NAME} is not configured. {hint}") from None
        except (OSError, ValueError) as e:
            raise NotAuthenticated(
                f"Stored credential at {self.path} is unreadable ({e}). {hint}"
            ) from e

        if not isinstance(raw, dict):
            raise NotAuthenticated(f"Stored credential at {self.path} is corrupt. {hint}")
        url = raw.get("url")
        token = raw.get("access_token")
        if not isinstance(url, str) or not isinstance(token, str):
            raise NotAuthenticated(f"Stored credential at {self.path} is incomplete. {hint}")
        try:
            return Credential(url, token)
        except ValidationFailed as e:
            raise NotAuthenticated(f"Stored credential is invalid: {e}. {hint}") from e

    def clear(self) -> None:
        """Remove the stored credential, if any."""
        self.path.unlink(missing_ok=True)
        logger.info("Cleared credential at %s", self.path)
