import threading

import pytest

from scene_montage.assets import AssetKind, AssetResolver, suffix_for
from scene_montage.domain import JobSpec, Scene
from scene_montage.errors import AssetUnavailable, StorageError
from scene_montage.storage import BlobStore
from scene_montage.workspace import WorkspaceManager


class CountingStore(BlobStore):
    def __init__(self, missing=()):
        self.missing = set(missing)
        self.downloads = []
        self._lock = threading.Lock()

    def download(self, name, destination, timeout):
        with self._lock:
            self.downloads.append(name)
        if name in self.missing:
            raise StorageError(f"Blob not found: '{name}'")
        destination.write_bytes(name.encode("utf-8"))
        return destination

    def upload(self, name, content, timeout):
        raise AssertionError("resolver never uploads")


def test_suffix_policy():
    assert suffix_for("photo.PNG", AssetKind.IMAGE) == ".png"
    assert suffix_for("photo", AssetKind.IMAGE) == ".jpg"
    assert suffix_for("voice.wav", AssetKind.AUDIO) == ".wav"
    assert suffix_for("voice.bin", AssetKind.AUDIO) == ".mp3"
    assert suffix_for("captions.txt", AssetKind.SUBTITLE) == ".srt"


def test_shared_narration_is_downloaded_once(tmp_path):
    spec = JobSpec(
        job_id="out.mp4",
        output_name="out.mp4",
        scenes=(Scene("a.jpg", "voice.mp3"), Scene("b.jpg", "voice.mp3"), Scene("a.jpg", "other.mp3")),
        music="music.mp3",
    )
    store = CountingStore()
    with WorkspaceManager(tmp_path) as workspace:
        assets = AssetResolver(store, max_workers=4).resolve(workspace, spec.asset_kinds())

    assert sorted(store.downloads) == ["a.jpg", "b.jpg", "music.mp3", "other.mp3", "voice.mp3"]
    assert set(assets) == {"a.jpg", "b.jpg", "voice.mp3", "other.mp3", "music.mp3"}
    assert assets["a.jpg"].kind is AssetKind.IMAGE
    assert assets["voice.mp3"].kind is AssetKind.AUDIO


def test_files_land_inside_the_workspace(tmp_path):
    store = CountingStore()
    with WorkspaceManager(tmp_path) as workspace:
        assets = AssetResolver(store).resolve(workspace, {"a; rm -rf /.jpg": AssetKind.IMAGE})
        asset = assets["a; rm -rf /.jpg"]
        assert asset.path.parent == workspace.root
        assert asset.path.read_bytes() == b"a; rm -rf /.jpg"


def test_single_failure_fails_the_whole_resolve(tmp_path):
    store = CountingStore(missing={"missing.mp3"})
    with WorkspaceManager(tmp_path) as workspace:
        with pytest.raises(AssetUnavailable) as excinfo:
            AssetResolver(store, max_workers=2).resolve(
                workspace,
                {"a.jpg": AssetKind.IMAGE, "missing.mp3": AssetKind.AUDIO, "b.jpg": AssetKind.IMAGE},
            )
    assert excinfo.value.name == "missing.mp3"
    assert "missing.mp3" in str(excinfo.value)


def test_empty_asset_set(tmp_path):
    with WorkspaceManager(tmp_path) as workspace:
        assert AssetResolver(CountingStore()).resolve(workspace, {}) == {}
