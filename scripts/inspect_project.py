#!/usr/bin/env python3
"""Inspect a saved motion-sketch project.

Prints per-path statistics (keyframes, segments, modifier stacks, playback
window, bounding box, keyframe progress) and the timeline length. With
--sample, also evaluates every path at the project frame rate and writes the
positions to a JSON file.

Usage:
    python scripts/inspect_project.py projects/demo.json
    python scripts/inspect_project.py projects/demo.json --sample out/positions.json
    python scripts/inspect_project.py projects/demo.json --config configs/editor_v1.yaml --log-level DEBUG
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from motionsketch.modifiers.engine import CurveCache
from motionsketch.playback import sample_path, timeline_duration
from motionsketch.serialization.curves import compute_bbox
from motionsketch.serialization.project import load_project
from motionsketch.utils import fs, validators
from motionsketch.utils.logging_config import get_logger, install_excepthook, setup_logging, shutdown

logger = get_logger(__name__)


def describe_path(path, cache: CurveCache) -> dict:
    """Collect display statistics for one path.

    Parameters
    ----------
    path : Path
        Loaded path
    cache : CurveCache
        Shared memo of effective curves

    Returns
    -------
    dict
        Summary with counts, playback window, bbox and progress
    """
    derived = cache.get(path)
    bbox = compute_bbox(derived.sketch)
    return {
        "id": path.id,
        "keyframes": len(path.keyframes),
        "segments": path.curve_count,
        "sketch_modifiers": [(m.name, m.strength) for m in path.sketch_modifiers],
        "graph_modifiers": [(m.name, m.strength) for m in path.graph_modifiers],
        "start_time": path.start_time,
        "duration": path.duration,
        "bbox": (bbox.x, bbox.y, bbox.width, bbox.height),
        "progress": [round(v, 3) for v in derived.progress],
    }


def print_summary(summaries: list, timeline: float, frame_rate: float) -> None:
    print("=" * 70)
    print(f"PROJECT: {len(summaries)} path(s), timeline {timeline:.3f}s @ {frame_rate:g} fps")
    print("=" * 70)

    for s in summaries:
        print(f"\n{s['id']}")
        print(f"  Keyframes:  {s['keyframes']} ({s['segments']} segments)")
        print(f"  Playback:   start {s['start_time']:.3f}s, duration {s['duration']:.3f}s")
        x, y, w, h = s['bbox']
        print(f"  BBox:       x={x:.2f} y={y:.2f} w={w:.2f} h={h:.2f}")
        print(f"  Progress:   {s['progress']}")
        for label, key in (("Sketch", "sketch_modifiers"), ("Graph", "graph_modifiers")):
            mods = s[key]
            if not mods:
                print(f"  {label} mods: none")
                continue
            print(f"  {label} mods: {len(mods)}")
            for name, strength in mods:
                print(f"    - {name!r} @ {strength:.2f}")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Inspect a saved motion-sketch project",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "project",
        type=Path,
        help="Project JSON file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Editor config YAML (default: built-in settings)",
    )
    parser.add_argument(
        "--sample",
        type=Path,
        default=None,
        help="Write per-frame positions of every path to this JSON file",
    )
    parser.add_argument(
        "--frame-rate",
        type=float,
        default=None,
        help="Sampling rate in fps (default: project setting)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )

    args = parser.parse_args()

    editor_cfg = (
        validators.load_editor_config(args.config)
        if args.config is not None
        else validators.default_editor_config()
    )
    log_kwargs = editor_cfg.logging.model_dump(by_alias=True)
    if args.log_level:
        log_kwargs["log_level"] = args.log_level
    setup_logging(**log_kwargs, context={"app": "inspect"})
    install_excepthook()

    try:
        return run_inspection(args)
    finally:
        shutdown()


def run_inspection(args: argparse.Namespace) -> int:
    """Load the project, print its summary and optionally write samples."""
    try:
        paths, settings = load_project(args.project)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Cannot load {args.project}: {e}")
        return 1

    cache = CurveCache()
    summaries = [describe_path(p, cache) for p in paths]
    frame_rate = args.frame_rate or settings.playback_frame_rate
    print_summary(summaries, timeline_duration(paths), frame_rate)

    if args.sample is not None:
        samples = {p.id: sample_path(p, frame_rate, cache).tolist() for p in paths}
        fs.ensure_dir(args.sample.parent)
        fs.atomic_json_dump({"frameRate": frame_rate, "positions": samples}, args.sample)
        logger.info(f"Wrote {sum(len(v) for v in samples.values())} samples to {args.sample}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
