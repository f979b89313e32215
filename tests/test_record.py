import json

import numpy as np
import pytest

import tools.record as recorder
from boids import Flock, WorldConfig
from tools.presets import get_preset_config


@pytest.fixture
def small_config():
    config = get_preset_config("default")
    config.update({
        "session_name": "unit",
        "count": 25,
        "total_frames": 12,
        "dt_per_frame": 0.02,
        "seed": 7,
    })
    return config


@pytest.fixture(autouse=True)
def frequent_checkpoints(monkeypatch):
    monkeypatch.setattr(recorder, "STATE_INTERVAL", 5)


def _reference_frames(config):
    flock = Flock.spawn(WorldConfig.from_dict(config["world"]), config["count"], seed=config["seed"])
    frames = []
    for _ in range(config["total_frames"]):
        flock.update(config["dt_per_frame"])
        frames.append((flock.positions.copy(), flock.forwards.copy()))
    return frames


def test_delta_codec_round_trip(rng):
    pos0 = rng.uniform(-40, 40, size=(50, 3)).astype(np.float32)
    fwd0 = rng.uniform(-1, 1, size=(50, 3)).astype(np.float32)
    pos1 = pos0 + np.float32(0.05)
    fwd1 = fwd0 - np.float32(0.01)

    first = recorder.compress_frame(pos0, fwd0)
    second = recorder.compress_frame(pos1, fwd1, pos0, fwd0)
    assert first[0] == recorder.FORMAT_ABSOLUTE
    assert second[0] == recorder.FORMAT_DELTA

    p0, f0 = recorder.decompress_frame(first)
    np.testing.assert_array_equal(p0, pos0)
    np.testing.assert_array_equal(f0, fwd0)

    p1, f1 = recorder.decompress_frame(second, p0, f0)
    np.testing.assert_allclose(p1, pos1, atol=1e-3)
    np.testing.assert_allclose(f1, fwd1, atol=1e-3)


def test_large_jump_falls_back_to_absolute(rng):
    pos0 = rng.uniform(-1, 1, size=(10, 3)).astype(np.float32)
    fwd = np.tile(np.float32([1, 0, 0]), (10, 1))
    pos1 = pos0.copy()
    pos1[3, 0] += 80.0   # A wrapped boid jumps across the box

    data = recorder.compress_frame(pos1, fwd, pos0, fwd)

    assert data[0] == recorder.FORMAT_ABSOLUTE
    positions, _ = recorder.decompress_frame(data)
    np.testing.assert_array_equal(positions, pos1)


def test_codec_errors(rng):
    pos = rng.uniform(-1, 1, size=(4, 3)).astype(np.float32)
    delta = recorder.compress_frame(pos, pos, pos, pos)

    with pytest.raises(ValueError):
        recorder.decompress_frame(delta)
    with pytest.raises(ValueError):
        recorder.decompress_frame(bytes([9]) + delta[1:], pos, pos)
    with pytest.raises(ValueError):
        recorder.decompress_frame(b"\x01")


def test_corrupt_frames_raise_value_error(rng):
    pos = rng.uniform(-1, 1, size=(4, 3)).astype(np.float32)
    frame = recorder.compress_frame(pos, pos)
    pos_size = int.from_bytes(frame[1:5], "little")
    garbage = frame[:5] + b"\xff" * pos_size + frame[5 + pos_size:]

    for data in (frame[:12], frame[:-1], frame + b"\x00", garbage):
        with pytest.raises(ValueError):
            recorder.decompress_frame(data)


def test_record_writes_compressed_frames(tmp_path, small_config):
    rec_dir = recorder.record(small_config, root=tmp_path, verbose=False)

    metadata = json.loads((rec_dir / "metadata.json").read_text())
    assert metadata["count"] == 25
    assert metadata["world"]["boundary_policy"] == "soft"
    assert recorder.get_completed_frames(rec_dir) == 12
    assert not list(rec_dir.glob("frame_*.npz"))
    assert [p.name for p in rec_dir.glob("state_*.npz")] == ["state_0009.npz"]

    reference = _reference_frames(small_config)
    for idx in (0, 5, 11):
        positions, forwards = recorder.load_frame(rec_dir, idx)
        np.testing.assert_allclose(positions, reference[idx][0], atol=2e-3)
        np.testing.assert_allclose(forwards, reference[idx][1], atol=2e-3)


def test_resume_continues_from_checkpoint(tmp_path, small_config):
    partial = dict(small_config, total_frames=8)
    rec_dir = recorder.record(partial, root=tmp_path, verbose=False)
    assert recorder.find_latest_state(rec_dir, 8)[1] == 4

    recorder.record(small_config, resume=True, root=tmp_path, verbose=False)

    assert recorder.get_completed_frames(rec_dir) == 12
    reference = _reference_frames(small_config)
    positions, _ = recorder.load_frame(rec_dir, 11)
    np.testing.assert_allclose(positions, reference[11][0], atol=2e-3)


def _interrupt_once(monkeypatch, name, at_frame):
    original = getattr(recorder, name)
    fired = []

    def wrapper(rec_dir, frame_idx, *args):
        if frame_idx == at_frame and not fired:
            fired.append(frame_idx)
            raise KeyboardInterrupt
        return original(rec_dir, frame_idx, *args)

    monkeypatch.setattr(recorder, name, wrapper)


def test_interrupt_during_frame_save_resumes_cleanly(tmp_path, small_config, monkeypatch):
    _interrupt_once(monkeypatch, "save_frame", 7)
    rec_dir = recorder.record(small_config, root=tmp_path, verbose=False)

    assert recorder.get_completed_frames(rec_dir) == 7
    assert recorder.find_latest_state(rec_dir, 12)[1] == 4

    recorder.record(small_config, resume=True, root=tmp_path, verbose=False)

    assert recorder.get_completed_frames(rec_dir) == 12
    reference = _reference_frames(small_config)
    positions, _ = recorder.load_frame(rec_dir, 11)
    np.testing.assert_allclose(positions, reference[11][0], atol=2e-3)


def test_interrupt_between_frames_checkpoints_last_frame(tmp_path, small_config, monkeypatch):
    _interrupt_once(monkeypatch, "save_state", 9)
    rec_dir = recorder.record(small_config, root=tmp_path, verbose=False)

    assert recorder.find_latest_state(rec_dir, 12)[1] == 9

    recorder.record(small_config, resume=True, root=tmp_path, verbose=False)

    reference = _reference_frames(small_config)
    positions, _ = recorder.load_frame(rec_dir, 11)
    np.testing.assert_allclose(positions, reference[11][0], atol=2e-3)


def test_missing_frame(tmp_path):
    with pytest.raises(FileNotFoundError):
        recorder.load_frame(tmp_path, 3)


def test_status_and_list(tmp_path, small_config, capsys):
    recorder.record(small_config, root=tmp_path, verbose=False)

    recorder.show_status("unit", root=tmp_path)
    recorder.list_recordings(root=tmp_path)
    recorder.show_status("missing", root=tmp_path)

    out = capsys.readouterr().out
    assert "[Status] Recording: unit" in out
    assert "Progress: 12/12 frames" in out
    assert "[List] Found 1 recording(s)" in out
    assert "[Status] No recording found: missing" in out


def test_cli_records_and_resumes(tmp_path, capsys):
    recorder.main(["cli_run", "--preset", "torus", "--count", "10", "--frames", "6",
                   "--seed", "1", "--root", str(tmp_path)])
    recorder.main(["--resume", "--root", str(tmp_path)])
    recorder.main(["--preset", "unknown", "--root", str(tmp_path)])

    out = capsys.readouterr().out
    assert "[Record] Using preset: torus" in out
    assert "[Record] Unknown preset: unknown" in out
    assert recorder.get_completed_frames(tmp_path / "cli_run") == 6


def test_cli_rejects_explicit_zero_overrides(tmp_path, capsys):
    for flag in ("--count", "--frames", "--dt"):
        with pytest.raises(SystemExit):
            recorder.main(["zero", flag, "0", "--root", str(tmp_path)])
        assert "[Record] Error" in capsys.readouterr().out
