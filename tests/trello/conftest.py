"""Pytest fixtures for trello tests.

Every test talks to an in-memory FakeTrello through httpx.MockTransport;
nothing leaves the process. Retry sleeps are recorded instead of slept.
"""

from pathlib import Path

import pytest
from pydantic import SecretStr

import src.trello.config as config_module
from src.trello.cache import BoardCache
from src.trello.client import TrelloClient
from src.trello.config import Credentials
from src.trello.session import TroSession

from .fakes import API_KEY, HOST, TOKEN, FakeTrello, ScriptedEditor


@pytest.fixture
def fake() -> FakeTrello:
    """Fake Trello with the 'Sprint 7' and 'Personal' boards."""
    return FakeTrello()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(api_key=API_KEY, token=SecretStr(TOKEN), host=HOST)


@pytest.fixture
def sleeps() -> list[float]:
    """Delays the client asked to sleep for, in order."""
    return []


@pytest.fixture
def client(fake: FakeTrello, credentials: Credentials, sleeps: list[float]):
    """TrelloClient wired to the fake service."""
    client = TrelloClient(credentials, transport=fake.transport, sleep=sleeps.append)
    yield client
    client.close()


@pytest.fixture
def cache(client: TrelloClient) -> BoardCache:
    return BoardCache(client)


@pytest.fixture
def editor() -> ScriptedEditor:
    """Editor stand-in that saves the file unchanged."""
    return ScriptedEditor()


@pytest.fixture
def session(client: TrelloClient, editor: ScriptedEditor):
    with TroSession(client, editor) as s:
        yield s


@pytest.fixture
def config_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point ~/.tro at a temporary directory."""
    home = tmp_path / ".tro"
    monkeypatch.setattr(config_module, "TRO_HOME", home)
    monkeypatch.setattr(config_module, "CONFIG_FILE", home / "config.toml")
    return home
