"""Headless host loop that drives the flock tick by tick."""

import time
from typing import Callable, Optional

import numpy as np

from boids import Flock, WorldConfig, compute_stats
from config import boids as config


class Simulation:
    """Owns a flock, feeds it clamped tick durations and reports progress."""

    def __init__(
        self,
        world: Optional[WorldConfig] = None,
        count: Optional[int] = None,
        seed: Optional[int] = None,
        settings: Optional[dict] = None,
        flock: Optional[Flock] = None,
        verbose: bool = True,
    ):
        self.settings = {**config.SIMULATION, **(settings or {})}
        self.world = world if world is not None else WorldConfig.from_dict(config.BOIDS)

        if flock is None:
            if count is None:
                count = config.BOIDS["count"]
            if seed is None:
                seed = self.settings["seed"]
            flock = Flock.spawn(self.world, count, rng=np.random.default_rng(seed))
        self.flock = flock

        self.max_dt = float(self.settings["max_dt"])
        self.status_interval = int(self.settings["status_interval"])
        self.verbose = verbose
        self.tps = 0.0

    def clamp_dt(self, dt: float) -> float:
        """Keep frame gaps within [0, max_dt] before they reach the core."""
        return max(0.0, min(float(dt), self.max_dt))

    def tick(self, dt: float) -> float:
        """Advance one tick and return the dt that was actually used."""
        dt = self.clamp_dt(dt)
        self.flock.update(dt)
        return dt

    def _report(self):
        stats = compute_stats(self.flock)
        print(
            f"[Boids] tick {stats.tick} | speed {stats.mean_speed:.2f} "
            f"(max {stats.max_speed:.2f}) | polar {stats.polarization:.2f} | "
            f"spread {stats.spread:.1f} | outside {stats.out_of_bounds} | {self.tps:.0f} tps"
        )

    def run(
        self,
        ticks: Optional[int] = None,
        dt: Optional[float] = None,
        realtime: bool = False,
        on_tick: Optional[Callable[[Flock], None]] = None,
    ) -> Flock:
        """
        Run the main loop.

        Args:
            ticks: Number of ticks (defaults to SIMULATION["ticks"])
            dt: Fixed step in seconds (defaults to SIMULATION["dt"])
            realtime: Use the wall clock between ticks instead of a fixed step
            on_tick: Called with the flock after every tick

        Returns:
            The flock after the last tick
        """
        ticks = int(self.settings["ticks"] if ticks is None else ticks)
        step = float(self.settings["dt"] if dt is None else dt)

        if self.verbose:
            print(f"[Boids] {self.flock.num_boids:,} boids | {ticks} ticks | "
                  f"{self.world.boundary_policy.value} walls | "
                  f"{self.world.neighbor_search.value} search")

        start = time.perf_counter()
        last = start
        window_start = start
        for n in range(ticks):
            if realtime:
                now = time.perf_counter()
                self.tick(now - last)
                last = now
            else:
                self.tick(step)

            if on_tick is not None:
                on_tick(self.flock)

            if self.verbose and self.status_interval > 0 and (n + 1) % self.status_interval == 0:
                now = time.perf_counter()
                self.tps = self.status_interval / max(now - window_start, 1e-9)
                window_start = now
                self._report()

        if self.verbose:
            elapsed = time.perf_counter() - start
            print(f"[Boids] Finished {ticks} ticks in {elapsed:.2f}s")
        return self.flock
