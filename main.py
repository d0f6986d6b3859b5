"""
main.py — Facial Affect Monitor Entry Point
Replays a recorded stream of frames through the monitoring pipeline.

Each line of the input file is one frame as JSON:
  {"timestamp": 1033.3,                      # ms, monotonic
   "landmarks": [[x, y, z], ...] | null,     # null → no face detected
   "emotions": {"sad": 0.5, ...},            # optional, classifier sample
   "blendshapes": {"browDownLeft": 0.1, ...}}# optional

Pipeline per frame:
  1. FrameInput from the JSON line
  2. MonitorCore.update()               → MonitorState (+ alerts)
  3. SessionRecorder.record()           → session snapshots
  4. MonitorServer.emit_frame()         → live JSON → HUD  (--serve)
  5. SessionStore                       → alert log + session archive

Usage:
  python main.py frames.jsonl
  python main.py frames.jsonl --thresholds my_thresholds.json
  python main.py frames.jsonl --serve --data-dir ./data
  python main.py frames.jsonl --debug
  python main.py frames.jsonl --disable-emotion neutral --disable-emotion surprised
"""

import argparse
import itertools
import json
import logging
import math
import sys
from typing import Dict, Iterator, Optional

import config
from alerts.alert_system import merge_thresholds
from core.clock import ManualClock
from core.logger import get_logger, set_console_level
from monitor_engine.data_structures import (
    AlertEvent, AlertThresholds, FrameInput, SessionData,
)
from monitor_engine.eye_metrics import landmarks_to_array
from monitor_engine.monitor_core import MonitorCore
from monitor_engine.session import SessionRecorder
from storage.session_store import SessionStore

log = get_logger("monitor.main")


# ──────────────────────────────────────────────────────────────────────────────
# Argument parsing
# ──────────────────────────────────────────────────────────────────────────────

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Facial Affect Monitor — frame replay")
    p.add_argument("frames",
                   help="JSON-lines file with one frame per line.")
    p.add_argument("--thresholds", default=None,
                   help="JSON file with alert threshold overrides.")
    p.add_argument("--data-dir",   default=config.DATA_DIR,
                   help=f"Alert log / session archive directory (default: {config.DATA_DIR}).")
    p.add_argument("--disable-emotion", action="append", default=[], metavar="NAME",
                   help="Ignore this emotion for alerts and the dominant emotion (repeatable).")
    p.add_argument("--no-store",   action="store_true",
                   help="Do not persist alerts or the session.")
    p.add_argument("--serve",      action="store_true",
                   help="Stream frames and alerts to the HUD over WebSocket.")
    p.add_argument("--debug",      action="store_true",
                   help="Enable verbose debug output.")
    return p.parse_args(argv)


# ──────────────────────────────────────────────────────────────────────────────
# Input
# ──────────────────────────────────────────────────────────────────────────────

def _parse_scores(data: dict, key: str) -> Optional[Dict[str, float]]:
    """Validate a name → number map (emotions, blendshapes); null or absent gives None."""
    scores = data.get(key)
    if scores is None:
        return None
    if not isinstance(scores, dict):
        raise ValueError(f"{key} must be a JSON object")
    parsed = {}
    for name, value in scores.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key}.{name} must be a number, got {value!r}")
        if not math.isfinite(value):
            raise ValueError(f"{key}.{name} must be finite")
        parsed[name] = float(value)
    return parsed


def parse_frame(line: str) -> FrameInput:
    """Decode one JSON line into a FrameInput. Raises ValueError on bad input."""
    data = json.loads(line)
    if not isinstance(data, dict):
        raise ValueError("frame must be a JSON object")
    timestamp = data.get("timestamp")
    if timestamp is not None:
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise ValueError(f"timestamp must be a number, got {timestamp!r}")
        if not math.isfinite(timestamp):
            raise ValueError("timestamp must be finite")
    landmarks = data.get("landmarks")
    return FrameInput(
        landmarks=landmarks_to_array(landmarks) if landmarks is not None else None,
        emotions=_parse_scores(data, "emotions"),
        blendshapes=_parse_scores(data, "blendshapes"),
        timestamp=float(timestamp) if timestamp is not None else None,
    )


def read_frames(path: str) -> Iterator[FrameInput]:
    """Yield frames from a JSON-lines file; bad lines are logged and skipped."""
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield parse_frame(line)
            except (ValueError, TypeError) as e:
                log.warning(f"{path}:{lineno}: skipping invalid frame ({e})")


def load_thresholds(path: Optional[str]) -> dict:
    if path is None:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        overrides = json.load(f)
    if not isinstance(overrides, dict):
        raise ValueError(f"{path}: thresholds must be a JSON object")
    merge_thresholds(AlertThresholds(), overrides)   # reject unknown keys early
    return overrides


# ──────────────────────────────────────────────────────────────────────────────
# Replay
# ──────────────────────────────────────────────────────────────────────────────

def run_replay(
    frames,
    thresholds: Optional[dict] = None,
    store: Optional[SessionStore] = None,
    server=None,
    enabled_emotions: Optional[Dict[str, bool]] = None,
) -> SessionData:
    """
    Drive MonitorCore over an iterable of FrameInput on a simulated clock.
    The clock and the session start at the first frame's timestamp.

    Returns:
        The recorded SessionData (summary filled in).
    """
    frames = iter(frames)
    first = next(frames, None)
    start = first.timestamp if first is not None and first.timestamp is not None else 0.0

    clock = ManualClock(start=start)
    recorder = SessionRecorder(clock)

    def on_alert(event: AlertEvent) -> None:
        recorder.add_alert(event)
        if server is not None:
            server.emit_alert(event)

    core = MonitorCore(
        thresholds=thresholds,
        clock=clock,
        sink=store.save_alert if store is not None else None,
        on_alert=on_alert,
        enabled_emotions=enabled_emotions,
    )

    recorder.start()
    for frame in itertools.chain([first] if first is not None else [], frames):
        state = core.update(frame)
        recorder.record(state)

        if server is not None:
            server.emit_frame(state.to_payload())

        if config.DEBUG_MODE:
            log.debug(
                f"Frame {state.frame_index} | t={state.timestamp:.0f}ms | "
                f"face={state.face_detected} | "
                f"blinks={state.blink.blink_count} ({state.blink.blink_rate}/min) | "
                f"attention={state.attention.attention_score:.2f}"
            )

    session = recorder.stop()

    if store is not None:
        store.save_session(session)
    return session


def print_summary(session: SessionData) -> None:
    s = session.summary
    print("\n" + "=" * 60)
    print(f"  Session {session.id}")
    print("=" * 60)
    print(f"  Duration        : {s.duration / 1000:.1f} s")
    print(f"  Dominant emotion: {s.dominant_emotion_overall}")
    print(f"  Total blinks    : {s.total_blinks}")
    print(f"  Avg blink rate  : {s.avg_blink_rate:.1f} /min")
    print(f"  Avg attention   : {s.avg_attention:.2f}")
    print(f"  Alerts          : {len(s.alerts)}")
    for a in s.alerts:
        print(f"    [{a.timestamp / 1000:8.1f}s] {a.severity.value:<6} {a.type.value}: {a.message}")
    print("=" * 60 + "\n")


# ──────────────────────────────────────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    args = parse_args(argv)
    if args.debug:
        config.DEBUG_MODE = True
        set_console_level(logging.DEBUG)

    try:
        thresholds = load_thresholds(args.thresholds)
    except (OSError, ValueError) as e:
        log.error(f"Cannot load thresholds: {e}")
        return 2

    store = None if args.no_store else SessionStore(args.data_dir)

    server = None
    if args.serve:
        from server.websocket_server import MonitorServer
        server = MonitorServer(store)
        server.start_background()

    try:
        session = run_replay(
            read_frames(args.frames), thresholds, store, server,
            enabled_emotions={name: False for name in args.disable_emotion},
        )
    except FileNotFoundError as e:
        log.error(f"Cannot open frames file: {e}")
        return 2
    except KeyboardInterrupt:
        log.info("KeyboardInterrupt — shutting down.")
        return 130
    finally:
        if server is not None:
            server.stop()

    print_summary(session)
    return 0


if __name__ == "__main__":
    sys.exit(main())
