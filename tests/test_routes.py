import pytest
from fastapi.testclient import TestClient

from scene_montage.errors import AssetUnavailable, SubprocessTimeout
from scene_montage.main import create_app

from conftest import FakeExecutor

PAYLOAD = {
    "scenes": [
        {"image": "a.jpg", "narration": "a.mp3"},
        {"image": "b.jpg", "narration": "b.mp3"},
    ],
    "outputFile": "final.mp4",
}


@pytest.fixture
def orchestrator(make_orchestrator):
    return make_orchestrator(FakeExecutor(durations={"a": 3.0, "b": 4.5}, dimensions=(1920, 1080)))


@pytest.fixture
def client(settings, orchestrator):
    with TestClient(create_app(settings, orchestrator=orchestrator)) as client:
        yield client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert "running" in response.json()["status"]


def test_sync_assembly(client, seed):
    seed("a.jpg", "b.jpg", "a.mp3", "b.mp3")
    response = client.post("/", json=PAYLOAD)

    assert response.status_code == 200
    body = response.json()
    assert body["outputFile"] == "final.mp4"
    assert body["resolution"] == "1920x1080"
    assert body["duration"] == pytest.approx(7.5)
    assert body["warnings"] == []


def test_sync_assembly_accepts_portuguese_fields(client, seed, store):
    seed("a.jpg", "a.mp3", "bed.mp3")
    response = client.post(
        "/",
        json={
            "cenas": [{"imagem": "a.jpg", "narracao": "a.mp3"}],
            "musica": "bed.mp3",
            "outputFile": "pt.mp4",
        },
    )
    assert response.status_code == 200
    assert (store.root / "pt.mp4").exists()


@pytest.mark.parametrize(
    "payload",
    [
        {"scenes": [], "outputFile": "x.mp4"},
        {"scenes": [{"image": "a.jpg"}], "outputFile": "x.mp4"},
        {"scenes": PAYLOAD["scenes"]},
        {"scenes": PAYLOAD["scenes"], "outputFile": "../x.mp4"},
        {"scenes": PAYLOAD["scenes"], "outputFile": "x.gif"},
        {"scenes": "not a list", "outputFile": "x.mp4"},
        {"scenes": PAYLOAD["scenes"], "outputFile": "x.mp4", "mixPolicy": "loudest"},
    ],
)
def test_invalid_payload_is_400(client, payload):
    assert client.post("/", json=payload).status_code == 400
    assert client.post("/jobs", json=payload).status_code == 400


def test_missing_asset_reported(client, seed):
    seed("a.jpg", "b.jpg", "a.mp3")
    response = client.post("/", json=PAYLOAD)
    assert response.status_code == 500
    assert "b.mp3" in response.json()["detail"]


def test_background_job_lifecycle(client, seed, orchestrator, store):
    seed("a.jpg", "b.jpg", "a.mp3", "b.mp3")
    response = client.post("/jobs", json=PAYLOAD)

    assert response.status_code == 202
    body = response.json()
    assert body == {"job_id": "final.mp4", "status": "pending", "status_location": "final.mp4.json"}

    orchestrator.wait("final.mp4", timeout=5)
    status = client.get("/jobs/final.mp4")
    assert status.status_code == 200
    record = status.json()
    assert record["status"] == "completed"
    assert record["resolution"] == "1920x1080"
    assert record["duration"] == pytest.approx(7.5)
    assert (store.root / "final.mp4.json").exists()


def test_failed_background_job_reports_error(client, seed, orchestrator):
    seed("a.jpg", "b.jpg", "a.mp3")
    client.post("/jobs", json=PAYLOAD)

    with pytest.raises(AssetUnavailable):
        orchestrator.wait("final.mp4", timeout=5)
    record = client.get("/jobs/final.mp4").json()
    assert record["status"] == "failed"
    assert "b.mp3" in record["error"]


def test_unknown_job_is_404(client):
    assert client.get("/jobs/missing.mp4").status_code == 404


class TimingOutExecutor(FakeExecutor):
    def run(self, tool, argv, timeout):
        if tool == "ffmpeg":
            raise SubprocessTimeout(tool, timeout)
        return super().run(tool, argv, timeout)


def test_timed_out_stage_is_500(settings, make_orchestrator, seed):
    seed("a.jpg", "b.jpg", "a.mp3", "b.mp3")
    app = create_app(settings, orchestrator=make_orchestrator(TimingOutExecutor()))
    with TestClient(app) as client:
        response = client.post("/", json=PAYLOAD)

    assert response.status_code == 500
    assert "timed out" in response.json()["detail"]
