import pytest

from boids import BoundaryPolicy, Flock, WorldConfig
from tools.presets import (
    PRESETS, get_preset_by_index, get_preset_config, get_preset_list, print_preset_menu
)


@pytest.mark.parametrize("key", sorted(PRESETS))
def test_every_preset_builds_a_working_flock(key):
    config = get_preset_config(key)
    world = WorldConfig.from_dict(config["world"])

    assert config["session_name"] == key
    assert config["count"] > 0
    flock = Flock.spawn(world, 16, seed=0)
    flock.update(config["dt_per_frame"])
    assert flock.tick == 1


def test_topology_presets_select_hard_walls():
    assert WorldConfig.from_dict(get_preset_config("torus")["world"]).boundary_policy is BoundaryPolicy.WRAP
    assert WorldConfig.from_dict(get_preset_config("bouncy_box")["world"]).boundary_policy is BoundaryPolicy.REFLECT


def test_lookup_helpers(capsys):
    presets = get_preset_list()
    assert [key for key, _ in presets][0] == "default"
    assert get_preset_by_index(0) == presets[0]
    assert get_preset_by_index(len(presets)) == (None, None)
    assert get_preset_config("missing") is None

    print_preset_menu()
    out = capsys.readouterr().out
    assert "BOIDS PRESETS" in out
    assert "TOPOLOGY" in out
