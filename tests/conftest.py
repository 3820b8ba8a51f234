"""Pytest configuration and shared fixtures."""

import os

# Must be set before anything imports app.settings / app.db
os.environ.setdefault("SQLALCHEMY_URL", "sqlite:///:memory:")
os.environ.setdefault("TASK_RUNNER", "inprocess")

import pytest

from app.db import Base, make_engine, make_session_factory
from app.poller import PollPolicy
from app.store import SettingsStore, VideoStore


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def video_store(session_factory):
    return VideoStore(session_factory)


@pytest.fixture
def settings_store(session_factory):
    return SettingsStore(session_factory)


@pytest.fixture
def make_video(video_store):
    def _make(video_id: str = "V1", title: str = "A video", **fields):
        video_store.upsert_video(video_id, title)
        if fields:
            video_store.update_video(video_id, **fields)
        return video_store.get_video(video_id)
    return _make


@pytest.fixture
def quick_policy():
    return PollPolicy(interval_sec=5.0, max_attempts=5)
