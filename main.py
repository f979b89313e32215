"""
3D Boids Simulation
===================

A headless flocking simulation. Boids steer by separation, alignment and
cohesion inside a bounded box; status lines report speed, polarization and
spread while it runs.

Usage:
    python main.py                          # Stock configuration
    python main.py --preset tight_school    # Named preset
    python main.py --boundary wrap --ticks 2000
    python main.py --realtime               # Step by wall-clock time
    python main.py --list-presets
"""

import argparse
import sys

from boids import WorldConfig
from config import boids as config
from core import Simulation
from tools.presets import PRESETS, get_preset_config, print_preset_menu


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="3D boids flocking simulation")
    parser.add_argument("--preset", type=str, help="Start from a named preset")
    parser.add_argument("--count", "-n", type=int, help="Number of boids")
    parser.add_argument("--ticks", "-t", type=int, help="Number of ticks to run")
    parser.add_argument("--dt", type=float, help="Fixed tick duration in seconds")
    parser.add_argument("--realtime", action="store_true", help="Use wall-clock time between ticks")
    parser.add_argument("--seed", type=int, help="Random seed for the initial flock")
    parser.add_argument("--boundary", choices=["soft", "wrap", "reflect"], help="Wall handling")
    parser.add_argument("--search", choices=["brute", "grid"], help="Neighbor search strategy")
    parser.add_argument("--quiet", action="store_true", help="Suppress status lines")
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.list_presets:
        print_preset_menu()
        return

    world_dict = dict(config.BOIDS)
    count = config.BOIDS["count"]
    settings = {}

    if args.preset:
        preset = get_preset_config(args.preset)
        if preset is None:
            print(f"[Boids] Unknown preset: {args.preset}")
            print("[Boids] Available presets:")
            for key in sorted(PRESETS):
                print(f"  - {key}")
            return
        world_dict.update(preset["world"])
        count = preset["count"]
        settings["ticks"] = preset["total_frames"]
        settings["dt"] = preset["dt_per_frame"]

    if args.boundary:
        world_dict["boundary_policy"] = args.boundary
    if args.search:
        world_dict["neighbor_search"] = args.search
    if args.count is not None:
        count = args.count

    try:
        world = WorldConfig.from_dict(world_dict)
        sim = Simulation(world=world, count=count, seed=args.seed,
                         settings=settings, verbose=not args.quiet)
    except ValueError as e:
        print(f"[Boids] Error: {e}")
        sys.exit(2)

    sim.run(ticks=args.ticks, dt=args.dt, realtime=args.realtime)


if __name__ == "__main__":
    main()
