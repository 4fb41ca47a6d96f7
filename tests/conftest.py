"""Shared fixtures: settings, a mocked GraphQL client and a recording event bus."""

from unittest.mock import MagicMock

import pytest

from hoppscotch_backup.context import BackupContext
from hoppscotch_backup.events import EventBus, EventRecorder
from hoppscotch_backup.graphql_client import HoppscotchGraphQLClient
from hoppscotch_backup.settings import Settings


@pytest.fixture
def repo_dir(tmp_path):
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    return repo


@pytest.fixture
def make_settings(repo_dir):
    def _make(**overrides):
        values = {
            "bearer_token": "jwt-token-0123456789",
            "source_control_token": "ghp_secrettoken987654",
            "source_control_username": "backup-bot",
            "repository_path": str(repo_dir),
        }
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def client():
    return MagicMock(spec=HoppscotchGraphQLClient)


@pytest.fixture
def context(settings, client, recorder):
    events = EventBus()
    events.subscribe(recorder)
    return BackupContext(settings=settings, client=client, events=events)
