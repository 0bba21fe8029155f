"""Actor registration pipeline, media encoder and blob upload."""

import asyncio
import os
import subprocess
import threading
import time

import httpx
import pytest

from matrixgen.services.actor_pipeline import (
    ActorRegistration,
    ActorRegistrationService,
    parse_timestamps,
)
from matrixgen.services.blob_store import CatboxBlobStore
from matrixgen.services.errors import (
    ActorRegistrationError,
    GatewayError,
    ParameterValidationError,
    UnsupportedCapabilityError,
)
from matrixgen.services.media_encoder import MediaEncoder
from matrixgen.services.providers import builtin_adapters
from matrixgen.services.registry import ProviderRegistry

from conftest import ScriptedGateway

CLIP_URL = "https://files.catbox.moe/abc123.mp4"
ACTOR = {"id": "ch_1", "username": "neo.actor", "permalink": "https://s/neo", "profile_picture_url": "https://s/p.png"}


class FakeEncoder:
    def __init__(self):
        self.calls = []

    async def image_to_video(self, image_path, output_path, seconds, audio_path=None):
        self.calls.append((image_path, seconds, audio_path))
        with open(output_path, "wb") as f:
            f.write(b"\x00mp4")
        return output_path


class FakeBlobStore:
    def __init__(self):
        self.uploaded = []

    async def upload(self, path):
        assert os.path.exists(path)
        self.uploaded.append(os.path.basename(path))
        return CLIP_URL


@pytest.fixture
def image(tmp_path):
    path = tmp_path / "face.png"
    path.write_bytes(b"\x89PNG")
    return str(path)


def _service(gateway):
    encoder, blobs = FakeEncoder(), FakeBlobStore()
    service = ActorRegistrationService(
        ProviderRegistry(builtin_adapters()), gateway, encoder, blobs, clip_seconds=3,
    )
    return service, encoder, blobs


def _req(image, **kw):
    params = dict(provider_id="sora-veo-cloud", credential="sk-test", image_path=image)
    params.update(kw)
    return ActorRegistration(**params)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_encodes_uploads_and_creates(image):
    gateway = ScriptedGateway({"code": 0, "data": ACTOR})
    service, encoder, blobs = _service(gateway)

    actor = await service.register(_req(image, from_task="task-7"))

    assert actor.id == "ch_1"
    assert actor.username == "neo.actor"
    assert encoder.calls == [(image, 3, None)]
    assert len(blobs.uploaded) == 1
    (spec,) = gateway.calls
    assert spec.url == "https://api.geeknow.top/sora/v1/characters"
    assert spec.body == {"url": CLIP_URL, "timestamps": "0,3", "from_task": "task-7"}


@pytest.mark.parametrize("timestamps", ["2,1", "0,5", "-1,2", "abc", "1", "1,1"])
def test_bad_timestamps_rejected(timestamps):
    with pytest.raises(ParameterValidationError):
        parse_timestamps(timestamps, 3)


def test_good_timestamps():
    assert parse_timestamps("0,3", 3) == (0.0, 3.0)
    assert parse_timestamps(" 0.5 , 2 ", 3) == (0.5, 2.0)


@pytest.mark.asyncio
async def test_validation_happens_before_any_io(image, tmp_path):
    gateway = ScriptedGateway()
    service, encoder, blobs = _service(gateway)

    with pytest.raises(UnsupportedCapabilityError, match="grsai-provider"):
        await service.register(_req(image, provider_id="grsai-provider"))
    with pytest.raises(ParameterValidationError):
        await service.register(_req(image, credential=""))
    with pytest.raises(ParameterValidationError):
        await service.register(_req(str(tmp_path / "missing.png")))
    with pytest.raises(ParameterValidationError):
        await service.register(_req(image, audio_path=str(tmp_path / "missing.mp3")))
    with pytest.raises(ParameterValidationError):
        await service.register(_req(image, timestamps="0,9"))

    assert encoder.calls == []
    assert blobs.uploaded == []
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_register_many_isolates_failures(image, tmp_path):
    gateway = ScriptedGateway(ACTOR)
    service, encoder, _ = _service(gateway)

    results = await service.register_many([
        _req(image),
        _req(str(tmp_path / "nope.png")),
    ])

    assert results[0].ok and results[0].actor.id == "ch_1"
    assert not results[1].ok
    assert "image file not found" in results[1].error
    assert len(encoder.calls) == 1


@pytest.mark.asyncio
async def test_timeout_gets_explanatory_message(image):
    gateway = ScriptedGateway(GatewayError("request timed out: POST https://api.geeknow.top/sora/v1/characters"))
    service, _, _ = _service(gateway)

    with pytest.raises(ActorRegistrationError, match="did not respond in time"):
        await service.register(_req(image))


@pytest.mark.asyncio
async def test_missing_actor_in_response_is_an_error(image):
    gateway = ScriptedGateway({"code": 1, "msg": "character quota exhausted"})
    service, _, _ = _service(gateway)

    with pytest.raises(ActorRegistrationError, match="character quota exhausted"):
        await service.register(_req(image))


@pytest.mark.asyncio
async def test_list_and_delete_actors():
    gateway = ScriptedGateway({"data": [ACTOR, {"id": "broken"}]}, {})
    service, _, _ = _service(gateway)

    actors = await service.list_actors("sora-veo-cloud", "sk-test")
    await service.delete_actor("sora-veo-cloud", "sk-test", "ch_1")

    assert [a.id for a in actors] == ["ch_1"]
    assert gateway.calls[1].method == "DELETE"
    assert gateway.calls[1].url.endswith("/sora/v1/characters/ch_1")


@pytest.mark.asyncio
async def test_list_actors_on_unsupported_provider():
    service, _, _ = _service(ScriptedGateway())
    with pytest.raises(UnsupportedCapabilityError):
        await service.list_actors("universal-mock", "k")


# ---------------------------------------------------------------------------
# MediaEncoder
# ---------------------------------------------------------------------------

def test_encoder_command_with_silent_track():
    cmd = MediaEncoder("ffmpeg").build_image_to_video_command("in.png", "out.mp4", 3)
    assert cmd[:2] == ["ffmpeg", "-y"]
    assert cmd[cmd.index("-loop") + 1] == "1"
    assert "anullsrc=channel_layout=stereo:sample_rate=44100" in cmd
    assert cmd[cmd.index("-c:v") + 1] == "libx264"
    assert cmd[-1] == "out.mp4"


def test_encoder_command_with_audio():
    cmd = MediaEncoder().build_image_to_video_command("in.png", "out.mp4", 3, audio_path="voice.mp3")
    assert "voice.mp3" in cmd
    assert not any("anullsrc" in part for part in cmd)
    assert "-shortest" in cmd


@pytest.mark.asyncio
async def test_encoder_serializes_conversions(monkeypatch):
    encoder = MediaEncoder()
    guard = threading.Lock()
    state = {"active": 0, "peak": 0}

    def fake_run(cmd):
        with guard:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with guard:
            state["active"] -= 1

    monkeypatch.setattr(encoder, "_run", fake_run)

    outputs = await asyncio.gather(*(encoder.image_to_video("i.png", f"o{i}.mp4", 3) for i in range(3)))

    assert outputs == ["o0.mp4", "o1.mp4", "o2.mp4"]
    assert state["peak"] == 1


@pytest.mark.asyncio
async def test_encoder_failure_raises(monkeypatch):
    def fake_subprocess_run(cmd, **kwargs):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="Invalid data found")

    monkeypatch.setattr("matrixgen.services.media_encoder.subprocess.run", fake_subprocess_run)

    with pytest.raises(ActorRegistrationError, match="encoding failed"):
        await MediaEncoder().image_to_video("i.png", "o.mp4", 3)


@pytest.mark.asyncio
async def test_missing_ffmpeg_binary_raises():
    encoder = MediaEncoder("matrixgen-no-such-ffmpeg-binary")
    with pytest.raises(ActorRegistrationError, match="ffmpeg not found"):
        await encoder.image_to_video("i.png", "o.mp4", 3)


# ---------------------------------------------------------------------------
# CatboxBlobStore
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_catbox_upload_returns_url(tmp_path):
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"mp4")
    seen = {}

    def handler(request):
        seen["body"] = request.content
        return httpx.Response(200, text=CLIP_URL)

    store = CatboxBlobStore(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    assert await store.upload(str(clip)) == CLIP_URL
    assert b'name="reqtype"' in seen["body"]
    assert b"fileupload" in seen["body"]
    assert b'name="fileToUpload"; filename="clip.mp4"' in seen["body"]


@pytest.mark.asyncio
async def test_catbox_rejection_raises(tmp_path):
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"mp4")

    def handler(request):
        return httpx.Response(200, text="File too large")

    store = CatboxBlobStore(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(ActorRegistrationError, match="File too large"):
        await store.upload(str(clip))
