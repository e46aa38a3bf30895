from __future__ import annotations

import numpy as np
import pytest

from freescribe.exceptions import InvalidAudioError
from freescribe.models.audio import AudioSample
from freescribe.utils import audio as audio_mod
from freescribe.utils.subprocess import RunResult


def test_audio_sample_is_read_only_mono() -> None:
    sample = AudioSample(samples=[0.0, 0.25, -0.25])

    assert len(sample) == 3
    assert sample.samples.dtype == np.float32
    assert sample.samples.flags.writeable is False
    with pytest.raises(ValueError):
        AudioSample(samples=np.zeros((2, 4), dtype=np.float32))


def test_from_pcm16_normalizes() -> None:
    data = np.array([0, 16384, -32768], dtype=np.int16).tobytes()

    sample = AudioSample.from_pcm16(data)

    assert np.allclose(sample.samples, [0.0, 0.5, -1.0])


def test_build_decode_command() -> None:
    cmd = audio_mod.build_decode_command("pipe:0", ffmpeg_bin="/usr/bin/ffmpeg", max_duration_s=30)

    assert cmd[0] == "/usr/bin/ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "pipe:0"
    assert cmd[cmd.index("-t") + 1] == "30.0"
    assert cmd[cmd.index("-ar") + 1] == "16000"
    assert cmd[-3:] == ["-f", "f32le", "pipe:1"]


@pytest.mark.asyncio
async def test_decode_audio_from_bytes(monkeypatch) -> None:
    pcm = np.array([0.1, -0.2, 0.3, 2.0], dtype="<f4").tobytes()
    seen: dict = {}

    async def _fake_run(args, *, input=None, **kwargs):  # noqa: ARG001
        seen["args"] = list(args)
        seen["input"] = input
        return RunResult(returncode=0, stdout=pcm, stderr=b"")

    monkeypatch.setattr(audio_mod, "run_subprocess", _fake_run)

    sample = await audio_mod.decode_audio(b"RIFF....")

    assert seen["input"] == b"RIFF...."
    assert "pipe:0" in seen["args"]
    assert np.allclose(sample.samples, [0.1, -0.2, 0.3, 1.0])
    assert sample.sampling_rate == 16000


@pytest.mark.asyncio
async def test_decode_audio_failure_raises_invalid_audio(monkeypatch) -> None:
    async def _fake_run(args, *, input=None, **kwargs):  # noqa: ARG001
        return RunResult(returncode=1, stdout=b"", stderr=b"Invalid data found when processing input")

    monkeypatch.setattr(audio_mod, "run_subprocess", _fake_run)

    with pytest.raises(InvalidAudioError, match="Invalid data"):
        await audio_mod.decode_audio(b"not audio")


@pytest.mark.asyncio
async def test_decode_audio_rejects_empty_input(tmp_path) -> None:
    with pytest.raises(InvalidAudioError):
        await audio_mod.decode_audio(b"")
    with pytest.raises(InvalidAudioError):
        await audio_mod.decode_audio(tmp_path / "missing.wav")


@pytest.mark.asyncio
async def test_decode_audio_with_no_samples(monkeypatch, tmp_path) -> None:
    src = tmp_path / "silence.wav"
    src.write_bytes(b"\x00" * 8)

    async def _fake_run(args, *, input=None, **kwargs):  # noqa: ARG001
        assert input is None
        assert str(src) in args
        return RunResult(returncode=0, stdout=b"", stderr=b"")

    monkeypatch.setattr(audio_mod, "run_subprocess", _fake_run)

    with pytest.raises(InvalidAudioError, match="empty"):
        await audio_mod.decode_audio(src)


def test_decode_pcm16_wraps_raw_samples() -> None:
    data = np.array([0, 16384, -16384, 8192], dtype="<i2").tobytes()

    sample = audio_mod.decode_pcm16(data)

    assert np.allclose(sample.samples, [0.0, 0.5, -0.5, 0.25])
    assert sample.sampling_rate == 16000


def test_decode_pcm16_truncates_to_max_duration() -> None:
    data = np.zeros(16000 * 3, dtype="<i2").tobytes()

    sample = audio_mod.decode_pcm16(data, max_duration_s=1.5)

    assert len(sample) == 24000


def test_decode_pcm16_rejects_bad_payloads() -> None:
    with pytest.raises(InvalidAudioError, match="empty"):
        audio_mod.decode_pcm16(b"")
    with pytest.raises(InvalidAudioError, match="odd"):
        audio_mod.decode_pcm16(b"\x00\x01\x02")
