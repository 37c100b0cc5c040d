"""
Rider credential providers.

Tokens are looked up on every call and never cached, so a token changed
while a session is running is used by the next report.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..config import CredentialsConfig

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    """Anything that can return the current bearer token."""

    def get_token(self) -> str | None:
        ...


def _clean(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


class EnvCredentialProvider:
    """Reads the token from an environment variable."""

    def __init__(self, name: str = "RIDER_TOKEN") -> None:
        self.name = name

    def get_token(self) -> str | None:
        return _clean(os.environ.get(self.name))


class FileCredentialStore:
    """Token persisted in a file readable only by the owner."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def get_token(self) -> str | None:
        try:
            return _clean(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Cannot read token file %s: %s", self.path, e)
            return None

    def set_token(self, token: str) -> None:
        token = _clean(token)
        if token is None:
            raise ValueError("token cannot be empty")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token + "\n", encoding="utf-8")
        os.chmod(self.path, 0o600)
        logger.info("Stored rider token in %s", self.path)

    def clear(self) -> bool:
        """Remove the stored token. Returns True if a file was removed."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Removed rider token %s", self.path)
        return True


class StaticCredentialProvider:
    """Fixed token, mostly for tests and one-off sends."""

    def __init__(self, token: str | None) -> None:
        self.token = token

    def get_token(self) -> str | None:
        return _clean(self.token)


class ChainedCredentialProvider:
    """First provider returning a token wins."""

    def __init__(self, *providers: CredentialProvider) -> None:
        self.providers = list(providers)

    def get_token(self) -> str | None:
        for provider in self.providers:
            token = provider.get_token()
            if token:
                return token
        return None


def build_credential_provider(cfg: CredentialsConfig) -> ChainedCredentialProvider:
    """Environment variable first, then the persisted token file."""
    return ChainedCredentialProvider(
        EnvCredentialProvider(cfg.token_env),
        FileCredentialStore(cfg.token_file),
    )
