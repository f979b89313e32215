import numpy as np
import pytest

import main as cli
from boids import Flock
from core import Simulation


def _sim(world, **settings):
    base = {"max_dt": 0.05, "status_interval": 0}
    base.update(settings)
    return Simulation(world=world, count=20, seed=3, settings=base, verbose=False)


def test_dt_is_clamped_by_the_host(world):
    sim = _sim(world)

    assert sim.tick(1.0) == pytest.approx(0.05)
    assert sim.tick(-0.5) == 0.0
    assert sim.tick(0.01) == pytest.approx(0.01)
    assert sim.flock.tick == 3
    assert sim.flock.time == pytest.approx(0.06)


def test_run_calls_back_every_tick(world):
    sim = _sim(world)
    seen = []

    flock = sim.run(ticks=7, dt=0.02, on_tick=lambda f: seen.append(f.tick))

    assert isinstance(flock, Flock)
    assert seen == list(range(1, 8))


def test_realtime_run_advances(world):
    sim = _sim(world)
    before = sim.flock.positions.copy()

    sim.run(ticks=3, realtime=True)

    assert sim.flock.tick == 3
    assert 0.0 <= sim.flock.time <= 3 * 0.05 + 1e-12
    assert before.shape == sim.flock.positions.shape


def test_seed_makes_runs_repeatable(world):
    a = _sim(world).run(ticks=10, dt=0.02)
    b = _sim(world).run(ticks=10, dt=0.02)
    np.testing.assert_array_equal(a.positions, b.positions)


def test_status_lines(world, capsys):
    sim = Simulation(world=world, count=10, seed=1,
                     settings={"status_interval": 2}, verbose=True)
    sim.run(ticks=4, dt=0.01)

    out = capsys.readouterr().out
    assert "[Boids] 10 boids" in out
    assert out.count("[Boids] tick") == 2
    assert "[Boids] Finished 4 ticks" in out


def test_cli_runs_headless(capsys):
    cli.main(["--count", "15", "--ticks", "3", "--seed", "2", "--boundary", "wrap", "--search", "grid"])
    out = capsys.readouterr().out
    assert "wrap walls" in out
    assert "grid search" in out


def test_cli_unknown_preset(capsys):
    cli.main(["--preset", "nope"])
    out = capsys.readouterr().out
    assert "[Boids] Unknown preset: nope" in out
    assert "tight_school" in out


def test_cli_rejects_bad_count(capsys):
    with pytest.raises(SystemExit):
        cli.main(["--count", "0", "--ticks", "1"])
    assert "[Boids] Error" in capsys.readouterr().out
