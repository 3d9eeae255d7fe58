import os
import random

import pytest
from fastapi.testclient import TestClient

from safestore.config import ServerConfig
from safestore.main import create_app

MAX_BACKUP_BYTES = 524288
HEX_DIGITS = "0123456789abcdef"

USER_AGENT = {"User-Agent": "Threema/5.0 (Android)"}
READ_HEADERS = {**USER_AGENT, "Accept": "application/octet-stream"}
WRITE_HEADERS = {**USER_AGENT, "Content-Type": "application/octet-stream"}


def generate_backup_id():
    """Generate a random, valid backup ID."""
    return ''.join(random.choice(HEX_DIGITS) for _ in range(64))


def generate_random_content(size_bytes):
    """Generate random binary content of specified size."""
    return os.urandom(size_bytes)


@pytest.fixture
def backup_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def make_client(backup_dir):
    """Build test clients for a config, starting the app lifespan for each."""
    clients = []

    def factory(**overrides):
        options = {"backup_dir": backup_dir, "max_backup_bytes": MAX_BACKUP_BYTES, "log_dir": ""}
        options.update(overrides)
        client = TestClient(create_app(ServerConfig(**options)))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
