"""Credential and configuration management.

Configuration is stored in ~/.tro/config.toml under the [trello] section.
Environment variables (TRELLO_API_KEY, TRELLO_TOKEN, TRELLO_HOST) take
precedence over the file.
"""

import io
import os
import tempfile
import tomllib
from dataclasses import dataclass
from pathlib import Path

import tomli_w
from pydantic import SecretStr

from src.trello.errors import ConfigError

TRO_HOME = Path.home() / ".tro"
CONFIG_FILE = TRO_HOME / "config.toml"

DEFAULT_HOST = "https://api.trello.com"


def atomic_write(path: Path, content: bytes) -> None:
    """Write content to a file atomically using temp file + rename.

    Args:
        path: Target file path
        content: Bytes to write
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file must live in the same directory for the rename to be atomic
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".tmp_",
        suffix=path.suffix,
    )
    try:
        os.write(fd, content)
        os.close(fd)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.close(fd)
        except OSError:
            pass
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


@dataclass(frozen=True)
class Credentials:
    """Trello API key and token, plus the API host."""

    api_key: str
    token: SecretStr
    host: str = DEFAULT_HOST

    @property
    def masked_token(self) -> str:
        """Token with everything but the last four characters hidden."""
        secret = self.token.get_secret_value()
        if len(secret) <= 4:
            return "****"
        return "*" * (len(secret) - 4) + secret[-4:]


def ensure_tro_home() -> Path:
    """Ensure ~/.tro directory exists."""
    TRO_HOME.mkdir(parents=True, exist_ok=True)
    return TRO_HOME


def _read_config_file() -> dict:
    if not CONFIG_FILE.exists():
        return {}
    with open(CONFIG_FILE, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {CONFIG_FILE}: {e}") from e


def load_credentials() -> Credentials:
    """Load credentials from the environment or ~/.tro/config.toml.

    Raises:
        ConfigError: if the key or token is missing
    """
    section = _read_config_file().get("trello", {})

    key = os.environ.get("TRELLO_API_KEY") or section.get("key")
    token = os.environ.get("TRELLO_TOKEN") or section.get("token")
    host = os.environ.get("TRELLO_HOST") or section.get("host") or DEFAULT_HOST

    if not key or not token:
        raise ConfigError(
            "Trello API key and token are not configured",
            hint=(
                "Set TRELLO_API_KEY and TRELLO_TOKEN, or add them to "
                f"{CONFIG_FILE} under [trello] (key = ..., token = ...)."
            ),
        )

    return Credentials(api_key=key, token=SecretStr(token), host=host)


def save_credentials(credentials: Credentials) -> None:
    """Save credentials to ~/.tro/config.toml, preserving other sections."""
    ensure_tro_home()
    existing_data = _read_config_file()

    section: dict = {
        "key": credentials.api_key,
        "token": credentials.token.get_secret_value(),
    }
    if credentials.host != DEFAULT_HOST:
        section["host"] = credentials.host
    existing_data["trello"] = section

    buffer = io.BytesIO()
    tomli_w.dump(existing_data, buffer)
    atomic_write(CONFIG_FILE, buffer.getvalue())
