"""Tests for credential configuration."""

import tomllib

import pytest
from pydantic import SecretStr

from src.trello import config as config_module
from src.trello.config import (
    DEFAULT_HOST,
    Credentials,
    atomic_write,
    load_credentials,
    save_credentials,
)
from src.trello.errors import ConfigError


class TestLoadCredentials:
    """Tests for load_credentials()."""

    def test_missing_everything(self, config_dir):
        with pytest.raises(ConfigError) as exc_info:
            load_credentials()
        assert "TRELLO_API_KEY" in exc_info.value.hint

    def test_from_environment(self, config_dir, monkeypatch):
        monkeypatch.setenv("TRELLO_API_KEY", "k")
        monkeypatch.setenv("TRELLO_TOKEN", "t")

        credentials = load_credentials()

        assert credentials.api_key == "k"
        assert credentials.token.get_secret_value() == "t"
        assert credentials.host == DEFAULT_HOST

    def test_from_file(self, config_dir):
        config_dir.mkdir()
        (config_dir / "config.toml").write_text(
            '[trello]\nkey = "file-key"\ntoken = "file-token"\nhost = "https://example.test"\n'
        )

        credentials = load_credentials()

        assert credentials.api_key == "file-key"
        assert credentials.host == "https://example.test"

    def test_environment_wins_over_file(self, config_dir, monkeypatch):
        config_dir.mkdir()
        (config_dir / "config.toml").write_text('[trello]\nkey = "file-key"\ntoken = "file-token"\n')
        monkeypatch.setenv("TRELLO_TOKEN", "env-token")

        credentials = load_credentials()

        assert credentials.api_key == "file-key"
        assert credentials.token.get_secret_value() == "env-token"

    def test_invalid_toml(self, config_dir):
        config_dir.mkdir()
        (config_dir / "config.toml").write_text("[trello\n")

        with pytest.raises(ConfigError):
            load_credentials()


class TestSaveCredentials:
    """Tests for save_credentials()."""

    def test_round_trip(self, config_dir):
        save_credentials(Credentials(api_key="k", token=SecretStr("secret-token")))

        credentials = load_credentials()
        assert credentials.api_key == "k"
        assert credentials.token.get_secret_value() == "secret-token"

    def test_preserves_other_sections(self, config_dir):
        config_dir.mkdir()
        (config_dir / "config.toml").write_text('[ui]\ntheme = "dark"\n')

        save_credentials(Credentials(api_key="k", token=SecretStr("t")))

        data = tomllib.loads(config_module.CONFIG_FILE.read_text())
        assert data["ui"] == {"theme": "dark"}
        assert "host" not in data["trello"]


class TestCredentials:
    """Tests for the Credentials dataclass."""

    def test_token_is_hidden_in_repr(self):
        credentials = Credentials(api_key="k", token=SecretStr("abcdef123456"))
        assert "abcdef123456" not in repr(credentials)

    def test_masked_token(self):
        assert Credentials(api_key="k", token=SecretStr("abcdef1234")).masked_token == "******1234"
        assert Credentials(api_key="k", token=SecretStr("abc")).masked_token == "****"


class TestAtomicWrite:
    """Tests for atomic_write()."""

    def test_creates_parent_and_leaves_no_temp_files(self, tmp_path):
        target = tmp_path / "nested" / "file.toml"

        atomic_write(target, b"x = 1\n")

        assert target.read_bytes() == b"x = 1\n"
        assert [p.name for p in target.parent.iterdir()] == ["file.toml"]
