"""Shared fixtures for scene_montage tests."""

import json
from pathlib import Path

import pytest

from scene_montage.config import Settings
from scene_montage.database import create_session_factory, init_database
from scene_montage.executor import CompletedRun
from scene_montage.orchestrator import JobOrchestrator
from scene_montage.storage import LocalBlobStore

VIDEO_SUFFIXES = (".mp4", ".mov", ".mkv")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        storage_backend="local",
        local_storage_dir=tmp_path / "storage",
        workspace_root=tmp_path / "workspaces",
        database_url=f"sqlite:///{tmp_path / 'jobs.db'}",
        download_workers=4,
        render_workers=2,
    )


@pytest.fixture
def store(settings):
    return LocalBlobStore(settings.local_storage_dir, settings.container)


@pytest.fixture
def session_factory(settings):
    engine, factory = create_session_factory(settings.database_url)
    init_database(engine)
    yield factory
    engine.dispose()


class FakeExecutor:
    """
    Stands in for ffmpeg/ffprobe. ffprobe calls answer from the durations (keyed by
    logical name stem) and dimensions given; ffmpeg calls create every output file they name.
    """

    def __init__(self, durations=None, dimensions=(1080, 1920), fail_on=None):
        self.durations = durations or {}
        self.dimensions = dimensions
        self.fail_on = fail_on
        self.calls = []

    def run(self, tool, argv, timeout):
        argv = [str(arg) for arg in argv]
        self.calls.append((tool, argv))
        if self.fail_on and self.fail_on(tool, argv):
            from scene_montage.errors import SubprocessFailure

            raise SubprocessFailure(tool, 1, "simulated failure")

        if tool == "ffprobe":
            target = Path(argv[-1])
            if "format=duration" in argv:
                duration = next(
                    (value for key, value in self.durations.items() if target.name.startswith(f"{key}-")),
                    3.0,
                )
                stdout = json.dumps({"format": {"duration": str(duration)}})
            elif self.dimensions is None:
                stdout = json.dumps({"streams": []})
            else:
                width, height = self.dimensions
                stdout = json.dumps({"streams": [{"width": width, "height": height}]})
            return CompletedRun(tool, argv, 0, stdout, "", 0.0)

        for arg in argv:
            path = Path(arg)
            if path.suffix in VIDEO_SUFFIXES and path.is_absolute() and not path.exists():
                path.write_bytes(b"rendered")
        return CompletedRun(tool, argv, 0, "", "", 0.0)

    def ffmpeg_calls(self):
        return [argv for tool, argv in self.calls if tool == "ffmpeg"]


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def make_orchestrator(settings, store, session_factory):
    created = []

    def _make(executor=None, **overrides):
        conf = settings.model_copy(update=overrides) if overrides else settings
        orchestrator = JobOrchestrator(conf, store, session_factory, executor=executor or FakeExecutor())
        created.append(orchestrator)
        return orchestrator

    yield _make
    for orchestrator in created:
        orchestrator.shutdown()


@pytest.fixture
def seed(store):
    """Upload placeholder blobs into the local container."""

    def _seed(*names, content=b"data"):
        for name in names:
            store.upload(name, content, timeout=5)

    return _seed
