from dndsheet.engine.models import Character
from dndsheet.engine.exhaustion import (
    EXHAUSTION_TABLE, MAX_EXHAUSTION, add_exhaustion, remove_exhaustion, effects_for,
    exhaustion_info, effective_max_hp, effective_speed,
    has_ability_check_disadvantage, has_attack_and_save_disadvantage,
)

def _char(**kw) -> Character:
    base = dict(id="pc.test", name="Rook", clazz="fighter", hp_max=25, hp_current=25, speed_land=30)
    base.update(kw)
    return Character(**base)

def test_three_levels_stack_effects():
    ch = _char()
    change = add_exhaustion(ch, 3)
    assert change.previous_level == 0
    assert change.new_level == 3
    assert change.effects == [
        "Disadvantage on ability checks",
        "Speed halved",
        "Disadvantage on attack rolls and saving throws",
    ]
    assert any("[Exh]" in line for line in change.logs)

def test_levels_are_clamped():
    ch = _char()
    change = add_exhaustion(ch, 10)
    assert ch.exhaustion_level == MAX_EXHAUSTION
    assert change.effects == ["Death"]
    assert ch.is_dead
    assert any("died" in line for line in change.logs)

    remove_exhaustion(ch, 10)
    assert ch.exhaustion_level == 0
    assert effects_for(0) == []

def test_negative_amounts_do_nothing():
    ch = _char(exhaustion_level=2)
    add_exhaustion(ch, -3)
    assert ch.exhaustion_level == 2
    remove_exhaustion(ch, -1)
    assert ch.exhaustion_level == 2

def test_effects_accumulate_level_by_level():
    for level in range(1, MAX_EXHAUSTION + 1):
        lower = set(EXHAUSTION_TABLE[level - 1].cumulative)
        assert lower <= set(EXHAUSTION_TABLE[level].cumulative)
    for level in range(1, MAX_EXHAUSTION):
        assert set(effects_for(level - 1)) <= set(effects_for(level))
    assert exhaustion_info(4).name == "Severe Exhaustion"
    assert exhaustion_info(99).level == MAX_EXHAUSTION

def test_derived_hit_points_and_speed():
    ch = _char()
    assert effective_max_hp(ch) == 25
    assert effective_speed(ch) == 30

    add_exhaustion(ch, 2)
    assert effective_speed(ch) == 15
    assert effective_max_hp(ch) == 25

    add_exhaustion(ch, 2)
    assert effective_max_hp(ch) == 12
    assert ch.hp_max == 25

    add_exhaustion(ch, 1)
    assert effective_speed(ch) == 0

    add_exhaustion(ch, 1)
    assert effective_max_hp(ch) == 12
    assert effective_speed(ch) == 0

def test_disadvantage_flags():
    ch = _char()
    assert not has_ability_check_disadvantage(ch)
    add_exhaustion(ch)
    assert has_ability_check_disadvantage(ch)
    assert not has_attack_and_save_disadvantage(ch)
    add_exhaustion(ch, 2)
    assert has_attack_and_save_disadvantage(ch)
