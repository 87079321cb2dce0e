# tests/conftest.py

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from taskflow.main import create_app
from taskflow.notifications import Notifier
from taskflow.settings import Settings
from taskflow.task_list import TaskListController
from taskflow.task_service import TaskService

from .fakes import FlakyRecordStore

# Fixed "current time" for completion stamps and overdue checks.
NOW = datetime(2024, 6, 15, 12, 0, 0)


def fixed_clock() -> datetime:
    return NOW


def make_settings(tmp_path: Path, **overrides) -> Settings:
    base = Settings(
        record_store_backend="memory",
        sqlite_db_path=str(tmp_path / "taskflow.db"),
        record_store_url=None,
        record_store_project_id=None,
        record_store_public_key=None,
        record_store_timeout=5.0,
        task_table="task1",
        task_page_size=100,
        cors_allow_origins=["*"],
        enable_auth=False,
        auth_username=None,
        auth_password=None,
        preferences_path=str(tmp_path / "preferences.json"),
        log_level="WARNING",
        log_dir=None,
    )
    return replace(base, **overrides)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture()
def store() -> FlakyRecordStore:
    return FlakyRecordStore()


@pytest.fixture()
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture()
def service(store: FlakyRecordStore) -> TaskService:
    return TaskService(store, table="task1", page_size=100)


@pytest.fixture()
def controller(service: TaskService, notifier: Notifier) -> TaskListController:
    return TaskListController(service, notifier=notifier, clock=fixed_clock)


@pytest.fixture()
def app(settings: Settings, store: FlakyRecordStore) -> FastAPI:
    return create_app(settings=settings, store=store, clock=fixed_clock, configure_logging=False)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    # Entering the client runs the lifespan, which performs the initial load.
    with TestClient(app) as c:
        yield c
