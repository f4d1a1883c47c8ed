"""Shared fixtures: temporary folders and a throwaway SQLite ledger."""
import logging
import os
import shutil
import tempfile
from unittest.mock import Mock

import pytest

from processors.config import WatcherConfig
from processors.storage import create_db_engine, init_schema, make_session_factory


@pytest.fixture
def temp_dirs():
    """Input, output and history directories"""
    root = tempfile.mkdtemp()
    dirs = tuple(os.path.join(root, name) for name in ("in", "out", "history"))
    for d in dirs:
        os.makedirs(d)
    yield dirs
    shutil.rmtree(root, ignore_errors=True)


@pytest.fixture
def engine():
    tmpdir = tempfile.mkdtemp()
    engine = create_db_engine(f"sqlite:///{os.path.join(tmpdir, 'ledger.db')}")
    init_schema(engine)
    yield engine
    engine.dispose()
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def mock_logger():
    return Mock(spec=logging.Logger)


@pytest.fixture
def config(temp_dirs):
    input_dir, output_dir, history_dir = temp_dirs
    return WatcherConfig(
        input_dir=input_dir,
        output_dir=output_dir,
        history_dir=history_dir,
        settle_seconds=0.01,
        max_tries=3,
        poll_interval=0.05,
    )


@pytest.fixture
def make_file():
    """Return a helper that writes `content` to `directory/name`"""
    def _make(directory, name, content):
        path = os.path.join(directory, name)
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        return path
    return _make
