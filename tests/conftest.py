import importlib
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.fixpos.core.config import sync_database_url
from app.fixpos.services import signals


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url

    import app.fixpos.core.config as config
    import app.fixpos.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app()


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", sync_database_url(database_url))
    command.upgrade(config, "head")


@pytest.fixture(autouse=True)
def _isolated_process_state():
    signals.bus.clear()
    yield
    signals.bus.clear()


@pytest.fixture()
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture()
def client(database_url):
    _run_migrations(database_url)
    app = _setup_app(database_url)

    with TestClient(app) as client:
        yield client


@pytest.fixture()
def db_session(client, database_url):
    engine = create_engine(sync_database_url(database_url))
    db = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()
