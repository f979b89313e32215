"""
Boids Trajectory Recorder
=========================

Runs a flock offline and saves every frame to disk so long runs can be
inspected or rendered later.

Usage:
    python -m tools.record --preset tight_school   # Start new recording
    python -m tools.record --resume                # Resume most recent recording
    python -m tools.record --status tight_school   # Check recording status
    python -m tools.record --list                  # List all recordings

Output:
    recordings/<session_name>/
        metadata.json     - Recording settings
        frame_0000.zstd   - Compressed position/facing data (zstd+delta compression)
        state_0099.npz    - Latest checkpoint, used by --resume
        ...
"""

import argparse
import json
import math
import struct
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import zstandard as zstd

from boids import Flock, WorldConfig, compute_stats
from tools.presets import PRESETS, get_preset_by_index, get_preset_config, print_preset_menu

# Get project root (parent of tools/)
PROJECT_ROOT = Path(__file__).parent.parent
RECORDINGS_DIR = PROJECT_ROOT / "recordings"

# Checkpoint the full flock state every this many frames
STATE_INTERVAL = 100

# Quantization for delta frames (int16 steps of 1/1000)
DELTA_SCALE = 1000.0

FORMAT_ABSOLUTE = 1
FORMAT_DELTA = 2


def get_recording_dir(session_name: str, root: Optional[Path] = None) -> Path:
    """Get (and create) the directory for a recording session."""
    base = Path(root or RECORDINGS_DIR) / session_name
    base.mkdir(parents=True, exist_ok=True)
    return base


def save_metadata(rec_dir: Path, config: dict, start_time: float):
    """Save recording metadata."""
    metadata = {
        **config,
        "start_time": start_time,
        "start_datetime": datetime.fromtimestamp(start_time).isoformat(),
    }
    with open(rec_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)


def load_metadata(rec_dir: Path) -> dict:
    """Load recording metadata."""
    with open(rec_dir / "metadata.json", "r") as f:
        return json.load(f)


def get_completed_frames(rec_dir: Path) -> int:
    """Count how many consecutive frames have been recorded."""
    count = 0
    while (rec_dir / f"frame_{count:04d}.npz").exists() or (rec_dir / f"frame_{count:04d}.zstd").exists():
        count += 1
    return count


def find_latest_state(rec_dir: Path, max_frame: int) -> Tuple[Optional[Path], int]:
    """Find the most recent state file and its frame number."""
    for frame in range(max_frame, -1, -1):
        state_file = rec_dir / f"state_{frame:04d}.npz"
        if state_file.exists():
            return state_file, frame
    return None, -1


def save_frame(rec_dir: Path, frame_idx: int, positions: np.ndarray, forwards: np.ndarray):
    """Save a single frame to disk (uncompressed for speed)."""
    np.savez(
        rec_dir / f"frame_{frame_idx:04d}.npz",
        positions=positions.astype(np.float32),
        forwards=forwards.astype(np.float32),
    )


def save_state(rec_dir: Path, frame_idx: int, flock: Flock):
    """Checkpoint the flock and drop the previous checkpoint."""
    np.savez(rec_dir / f"state_{frame_idx:04d}.npz", **flock.state())
    for old_state in rec_dir.glob("state_*.npz"):
        if old_state.name != f"state_{frame_idx:04d}.npz":
            old_state.unlink()


# =============================================================================
# ZSTD + DELTA COMPRESSION
# =============================================================================

def compress_frame(positions: np.ndarray, forwards: np.ndarray,
                   prev_positions: Optional[np.ndarray] = None,
                   prev_forwards: Optional[np.ndarray] = None) -> bytes:
    """
    Compress frame data using zstd with delta compression.

    Format:
    - 1 byte: compression format (1=zstd absolute, 2=zstd+delta)
    - 4 bytes: positions data size
    - N bytes: compressed positions
    - 4 bytes: forwards data size
    - N bytes: compressed forwards

    Delta frames store int16 differences scaled by DELTA_SCALE. A frame whose
    differences do not fit (e.g. a boid wrapped to the far wall) is stored as
    absolute instead.
    """
    positions = np.asarray(positions, dtype=np.float32)
    forwards = np.asarray(forwards, dtype=np.float32)
    comp_format = FORMAT_ABSOLUTE

    if prev_positions is not None and prev_forwards is not None:
        pos_delta = np.rint((positions - prev_positions) * DELTA_SCALE)
        fwd_delta = np.rint((forwards - prev_forwards) * DELTA_SCALE)
        limit = np.iinfo(np.int16).max
        if np.abs(pos_delta).max(initial=0) <= limit and np.abs(fwd_delta).max(initial=0) <= limit:
            comp_format = FORMAT_DELTA
            pos_data = pos_delta.astype(np.int16).tobytes()
            fwd_data = fwd_delta.astype(np.int16).tobytes()

    if comp_format == FORMAT_ABSOLUTE:
        pos_data = positions.tobytes()
        fwd_data = forwards.tobytes()

    cctx = zstd.ZstdCompressor(level=19)
    pos_compressed = cctx.compress(pos_data)
    fwd_compressed = cctx.compress(fwd_data)

    result = struct.pack('B', comp_format)
    result += struct.pack('I', len(pos_compressed))
    result += pos_compressed
    result += struct.pack('I', len(fwd_compressed))
    result += fwd_compressed
    return result


def _read_block(data: bytes, offset: int) -> Tuple[bytes, int]:
    """Read one length-prefixed block, returning it and the next offset."""
    if offset + 4 > len(data):
        raise ValueError("Compressed frame is truncated")
    size = struct.unpack('I', data[offset:offset + 4])[0]
    offset += 4
    if offset + size > len(data):
        raise ValueError("Compressed frame is truncated")
    return data[offset:offset + size], offset + size


def _decode_block(block: bytes, dtype) -> np.ndarray:
    try:
        raw = zstd.ZstdDecompressor().decompress(block)
        return np.frombuffer(raw, dtype=dtype).reshape(-1, 3)
    except (zstd.ZstdError, ValueError) as e:
        raise ValueError(f"Corrupt frame data: {e}") from e


def decompress_frame(data: bytes, prev_positions: Optional[np.ndarray] = None,
                     prev_forwards: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Decompress frame data produced by compress_frame."""
    if len(data) < 9:
        raise ValueError("Invalid compressed data")

    comp_format = struct.unpack('B', data[0:1])[0]
    if comp_format not in (FORMAT_ABSOLUTE, FORMAT_DELTA):
        raise ValueError(f"Unknown compression format: {comp_format}")
    if comp_format == FORMAT_DELTA and (prev_positions is None or prev_forwards is None):
        raise ValueError("Delta compression requires previous frame")

    offset = 1
    pos_compressed, offset = _read_block(data, offset)
    fwd_compressed, offset = _read_block(data, offset)
    if offset != len(data):
        raise ValueError(f"{len(data) - offset} trailing bytes after frame data")

    dtype = np.float32 if comp_format == FORMAT_ABSOLUTE else np.int16
    pos_values = _decode_block(pos_compressed, dtype)
    fwd_values = _decode_block(fwd_compressed, dtype)
    if pos_values.shape != fwd_values.shape:
        raise ValueError(f"Frame has {len(pos_values)} positions but {len(fwd_values)} forwards")

    if comp_format == FORMAT_ABSOLUTE:
        positions = pos_values.copy()
        forwards = fwd_values.copy()
    else:
        if pos_values.shape != np.shape(prev_positions):
            raise ValueError(f"Delta frame has {len(pos_values)} boids, previous frame has {len(prev_positions)}")
        pos_delta = pos_values.astype(np.float32)
        fwd_delta = fwd_values.astype(np.float32)
        positions = (prev_positions + pos_delta / DELTA_SCALE).astype(np.float32)
        forwards = (prev_forwards + fwd_delta / DELTA_SCALE).astype(np.float32)

    return positions, forwards


def load_frame(rec_dir: Path, frame_idx: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Load a single frame from disk as (positions, forwards).

    Delta frames are resolved by walking back to the nearest absolute or
    uncompressed frame and replaying forward.
    """
    chain = []
    idx = frame_idx
    base = None
    while idx >= 0:
        zstd_file = rec_dir / f"frame_{idx:04d}.zstd"
        npz_file = rec_dir / f"frame_{idx:04d}.npz"
        if zstd_file.exists():
            data = zstd_file.read_bytes()
            if len(data) < 1:
                raise ValueError(f"Frame {idx:04d} is empty")
            chain.append(data)
            if struct.unpack('B', data[0:1])[0] != FORMAT_DELTA:
                break
        elif npz_file.exists():
            with np.load(npz_file) as frame:
                base = (frame["positions"].copy(), frame["forwards"].copy())
            break
        else:
            raise FileNotFoundError(f"Frame {idx:04d} not found")
        idx -= 1

    if base is None and (not chain or struct.unpack('B', chain[-1][0:1])[0] == FORMAT_DELTA):
        raise ValueError(f"Frame {frame_idx:04d} is delta-compressed but no base frame was found")

    positions, forwards = base if base is not None else (None, None)
    for data in reversed(chain):
        positions, forwards = decompress_frame(data, positions, forwards)
    return positions, forwards


def compress_recording(rec_dir: Path, total_frames: int) -> Tuple[int, int, int]:
    """
    Convert uncompressed .npz frames into .zstd frames.

    Returns (frames compressed, original bytes, compressed bytes).
    """
    compressed = original_bytes = saved_bytes = 0
    prev_positions = prev_forwards = None

    for frame_idx in range(total_frames):
        npz_file = rec_dir / f"frame_{frame_idx:04d}.npz"
        if not npz_file.exists():
            prev_positions = prev_forwards = None
            continue

        if prev_positions is None and frame_idx > 0:
            # Delta against what a reader will reconstruct, not the raw frame
            prev_positions, prev_forwards = load_frame(rec_dir, frame_idx - 1)

        with np.load(npz_file) as frame:
            positions = frame["positions"].copy()
            forwards = frame["forwards"].copy()

        data = compress_frame(positions, forwards, prev_positions, prev_forwards)
        (rec_dir / f"frame_{frame_idx:04d}.zstd").write_bytes(data)
        original_bytes += npz_file.stat().st_size
        saved_bytes += len(data)
        npz_file.unlink()
        compressed += 1

        prev_positions, prev_forwards = decompress_frame(data, prev_positions, prev_forwards)

    return compressed, original_bytes, saved_bytes


# =============================================================================
# RECORDING
# =============================================================================

def format_time(seconds: float) -> str:
    """Format seconds as human-readable time."""
    if seconds < 90:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def _discard_frames_after(rec_dir: Path, frame_idx: int):
    for path in list(rec_dir.glob("frame_*.npz")) + list(rec_dir.glob("frame_*.zstd")):
        if int(path.stem.split("_")[1]) > frame_idx:
            path.unlink()


def record(config: dict, resume: bool = False, root: Optional[Path] = None,
           verbose: bool = True) -> Path:
    """Run the flock for config["total_frames"] frames, saving each one."""
    world = WorldConfig.from_dict(config["world"])
    total_frames = int(config["total_frames"])
    dt = float(config["dt_per_frame"])
    if isinstance(config["count"], bool) or int(config["count"]) < 1:
        raise ValueError(f"count must be a positive integer, got {config['count']!r}")
    if total_frames < 1:
        raise ValueError(f"total_frames must be at least 1, got {total_frames}")
    if not dt > 0 or not math.isfinite(dt):
        raise ValueError(f"dt_per_frame must be positive, got {dt}")
    rec_dir = get_recording_dir(config["session_name"], root)

    flock = None
    start_frame = 0

    if resume:
        completed = get_completed_frames(rec_dir)
        state_file, state_frame = find_latest_state(rec_dir, completed)
        if state_file is not None:
            if verbose:
                print(f"[Record] Found {completed} completed frames")
                print(f"[Record] Loading state from frame {state_frame}")
            with np.load(state_file) as state:
                flock = Flock.from_state(world, {key: state[key] for key in state.files})
            _discard_frames_after(rec_dir, state_frame)
            start_frame = state_frame + 1
        elif verbose:
            print("[Record] Warning: No state file found, recomputing from start...")

    if flock is None:
        _discard_frames_after(rec_dir, -1)
        for old_state in rec_dir.glob("state_*.npz"):
            old_state.unlink()
        if verbose:
            print(f"[Record] Starting new recording: {config['session_name']}")
            print(f"[Record] Boids: {config['count']:,} | Frames: {total_frames} | dt={dt:.4f}")
        flock = Flock.spawn(world, config["count"], seed=config.get("seed"))
        save_metadata(rec_dir, config, time.time())

    start_time = time.time()
    last_saved = start_frame - 1
    stepping = False
    try:
        for frame in range(start_frame, total_frames):
            stepping = True
            flock.update(dt)
            save_frame(rec_dir, frame, flock.positions, flock.forwards)
            last_saved = frame
            stepping = False

            if (frame + 1) % STATE_INTERVAL == 0:
                save_state(rec_dir, frame, flock)

            if verbose and (frame + 1) % STATE_INTERVAL == 0:
                stats = compute_stats(flock)
                elapsed = time.time() - start_time
                print(f"[Record] Frame {frame + 1}/{total_frames} | "
                      f"polar {stats.polarization:.2f} | elapsed {format_time(elapsed)}")
    except KeyboardInterrupt:
        # The flock may be mid-step and the frame file half written: drop that
        # frame and keep the last periodic checkpoint for --resume.
        _discard_frames_after(rec_dir, last_saved)
        if not stepping and last_saved >= start_frame:
            save_state(rec_dir, last_saved, flock)
        if verbose:
            print(f"\n[Record] Paused at frame {last_saved + 1}")
            print(f"[Record] To resume: python -m tools.record --resume {config['session_name']}")

    if verbose:
        print("[Record] Compressing frames...")
    count, original, saved = compress_recording(rec_dir, total_frames)
    if verbose:
        ratio = (1 - saved / original) * 100 if original > 0 else 0
        print(f"[Compress] Compressed {count} frames ({ratio:.1f}% reduction)")
        print(f"[Record] Total time: {format_time(time.time() - start_time)}")
        print(f"[Record] Output: {rec_dir}")
    return rec_dir


def show_status(session_name: str, root: Optional[Path] = None):
    """Show recording status for a specific session."""
    rec_dir = Path(root or RECORDINGS_DIR) / session_name

    if not (rec_dir / "metadata.json").exists():
        print(f"[Status] No recording found: {session_name}")
        return

    metadata = load_metadata(rec_dir)
    completed = get_completed_frames(rec_dir)
    total = metadata["total_frames"]

    print(f"\n[Status] Recording: {session_name}")
    print(f"  Boids: {metadata['count']:,}")
    print(f"  Walls: {metadata['world']['boundary_policy']}")
    print(f"  Progress: {completed}/{total} frames ({completed / total * 100:.1f}%)")
    print(f"  Started: {metadata.get('start_datetime', 'unknown')}")

    if completed < total:
        print(f"\n  To resume: python -m tools.record --resume {session_name}")


def list_recordings(root: Optional[Path] = None):
    """List all available recordings."""
    recordings_dir = Path(root or RECORDINGS_DIR)

    if not recordings_dir.exists():
        print("[List] No recordings directory found")
        return

    sessions = sorted(d.name for d in recordings_dir.iterdir() if d.is_dir() and (d / "metadata.json").exists())
    if not sessions:
        print("[List] No recordings found")
        return

    print(f"\n[List] Found {len(sessions)} recording(s):\n")
    for session in sessions:
        rec_dir = recordings_dir / session
        metadata = load_metadata(rec_dir)
        completed = get_completed_frames(rec_dir)
        total = metadata["total_frames"]
        status = "✓" if completed >= total else f"{completed / total * 100:.0f}%"
        print(f"  {session:30s} | {metadata['count']:>8,} boids | {completed:>5}/{total:<5} frames | {status}")
    print()


def _most_recent_session(root: Optional[Path] = None) -> Optional[str]:
    recordings_dir = Path(root or RECORDINGS_DIR)
    if not recordings_dir.exists():
        return None
    sessions = [d for d in recordings_dir.iterdir() if d.is_dir() and (d / "metadata.json").exists()]
    if not sessions:
        return None
    sessions.sort(key=lambda d: d.stat().st_mtime, reverse=True)
    return sessions[0].name


def main(argv=None):
    parser = argparse.ArgumentParser(description="Boids offline recorder")
    parser.add_argument("session", nargs="?", help="Session name (for --resume or --status)")
    parser.add_argument("--resume", action="store_true", help="Resume interrupted recording")
    parser.add_argument("--status", action="store_true", help="Show recording status")
    parser.add_argument("--list", action="store_true", help="List all recordings")
    parser.add_argument("--preset", type=str, default="default", help="Use preset by name")
    parser.add_argument("--preset-id", type=int, help="Use preset by index number")
    parser.add_argument("--count", "-n", type=int, help="Override number of boids")
    parser.add_argument("--frames", "-f", type=int, help="Override number of frames")
    parser.add_argument("--dt", type=float, help="Override time step per frame")
    parser.add_argument("--seed", type=int, help="Random seed for the initial flock")
    parser.add_argument("--root", type=Path, help="Recordings directory")
    args = parser.parse_args(argv)

    if args.list:
        list_recordings(args.root)
        return

    if args.status:
        if args.session:
            show_status(args.session, args.root)
        else:
            list_recordings(args.root)
        return

    if args.resume:
        session_name = args.session or _most_recent_session(args.root)
        if session_name is None:
            print("[Record] No recordings found to resume")
            return
        rec_dir = Path(args.root or RECORDINGS_DIR) / session_name
        if not (rec_dir / "metadata.json").exists():
            print(f"[Record] No metadata found for session: {session_name}")
            return
        config = load_metadata(rec_dir)
        config["session_name"] = session_name
        record(config, resume=True, root=args.root)
        return

    if args.preset_id is not None:
        key, preset = get_preset_by_index(args.preset_id)
        if key is None:
            print(f"[Record] Invalid preset index: {args.preset_id}")
            print_preset_menu()
            return
        config = get_preset_config(key)
        print(f"[Record] Using preset [{args.preset_id}]: {preset['name']}")
    else:
        config = get_preset_config(args.preset)
        if config is None:
            print(f"[Record] Unknown preset: {args.preset}")
            print("[Record] Available presets:")
            for key in sorted(PRESETS):
                print(f"  - {key}")
            return
        print(f"[Record] Using preset: {args.preset}")

    if args.session:
        config["session_name"] = args.session
    if args.count is not None:
        config["count"] = args.count
        print(f"[Record] Override: {args.count:,} boids")
    if args.frames is not None:
        config["total_frames"] = args.frames
        print(f"[Record] Override: {args.frames} frames")
    if args.dt is not None:
        config["dt_per_frame"] = args.dt
        print(f"[Record] Override: dt={args.dt}")
    config["seed"] = args.seed

    try:
        record(config, resume=False, root=args.root)
    except ValueError as e:
        print(f"[Record] Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
