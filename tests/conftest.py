import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Reloaded in dependency order so configuration changes take effect cleanly.
# sharebox.models is left alone: its tables stay registered on the shared metadata.
MODULE_ORDER = [
    "sharebox.config",
    "sharebox.core.exceptions",
    "sharebox.core.metrics",
    "sharebox.core.rate_limit",
    "sharebox.core.context",
    "sharebox.db",
    "sharebox.storage",
    "sharebox.services.access",
    "sharebox.services.ledger",
    "sharebox.services.files",
    "sharebox.services.derivatives",
    "sharebox.services.uploads",
    "sharebox.services.delivery",
    "sharebox.services.deletion",
    "sharebox.services.users",
    "sharebox.services.stats",
    "sharebox.auditor",
    "sharebox.api.deps",
    "sharebox.api.routes",
    "sharebox.api.admin",
    "sharebox.main",
]


def _prepare_client(
    tmp_path,
    monkeypatch,
    *,
    rate_limit="1000",
    max_size=str(10 * 1024 * 1024),
    max_storage=str(1024 * 1024 * 1024),
    cache_age="120",
    allowed_types="",
):
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)

    db_path = tmp_path / "test.db"
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("DB_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("ENABLE_LEDGER_AUDIT", "false")
    monkeypatch.setenv("REDIS_URL", "")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", rate_limit)
    monkeypatch.setenv("MAX_FILE_SIZE_BYTES", max_size)
    monkeypatch.setenv("DEFAULT_MAX_STORAGE_BYTES", max_storage)
    monkeypatch.setenv("CACHE_MAX_AGE_SECONDS", cache_age)
    monkeypatch.setenv("ALLOWED_MIME_TYPES", allowed_types)

    for module_name in MODULE_ORDER:
        module = importlib.import_module(module_name)
        importlib.reload(module)

    main = sys.modules["sharebox.main"]

    test_client = TestClient(main.app)
    test_client.upload_dir = tmp_path / "uploads"  # type: ignore[attr-defined]
    return test_client


def as_user(user_id="alice", role="user"):
    return {"x-user-id": user_id, "x-user-role": role}


ADMIN = as_user("root", "admin")


def upload(client, user_id="alice", files=None, **kwargs):
    files = files or [("files", ("hello.txt", b"hello world", "text/plain"))]
    return client.post("/api/files/upload", files=files, headers=as_user(user_id), **kwargs)


@pytest.fixture
def make_client(tmp_path, monkeypatch):
    opened = []

    def _make(**options):
        test_client = _prepare_client(tmp_path, monkeypatch, **options)
        opened.append(test_client)
        return test_client.__enter__()

    yield _make
    for test_client in opened:
        test_client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
