from pathlib import Path
import random
import pytest
from dndsheet.engine.loader import load_content
from dndsheet.engine.chargen import CharBuildState, build_character
from dndsheet.engine.rest import RestEngine, sync_class_features
from dndsheet.engine.exhaustion import effective_max_hp

CONTENT_DIR = Path(__file__).resolve().parents[1] / "src" / "dndsheet" / "content"

@pytest.fixture(scope="module")
def content():
    return load_content(CONTENT_DIR)

def _make(content, clazz="fighter", level=5, **scores):
    abilities = {"str": 15, "dex": 12, "con": 14, "int": 10, "wis": 12, "cha": 14}
    abilities.update(scores)
    ch, _ = build_character(content, CharBuildState(name="Vale", clazz=clazz, level=level, abilities=abilities))
    return ch, RestEngine(content, ch, random.Random(42))

# ---------------------------------------------------------------- refusals

def test_speed_zero_blocks_short_rest_only(content):
    ch, rest = _make(content)
    ch.exhaustion_level = 5

    res = rest.short_rest()
    assert not res.success
    assert "speed reduced to 0" in res.message.lower()
    assert ch.exhaustion_level == 5

    res = rest.long_rest()
    assert res.success
    assert res.exhaustion_reduced
    assert ch.exhaustion_level == 4

def test_dead_character_cannot_rest(content):
    ch, rest = _make(content)
    ch.exhaustion_level = 6
    hp = ch.hp_current
    assert rest.can_take_short_rest() == (False, "Character is dead")
    assert rest.can_take_long_rest() == (False, "Character is dead")
    assert not rest.short_rest().success
    assert not rest.long_rest().success
    assert ch.hp_current == hp
    assert ch.exhaustion_level == 6

# ---------------------------------------------------------------- short rest

def test_short_rest_rejects_too_many_hit_dice_without_changes(content):
    ch, rest = _make(content)
    ch.hit_dice.current = 2
    ch.hp_current = 5
    ch.feature_uses.decrement_use("Second Wind")
    before = ch.model_dump()

    res = rest.short_rest(3)
    assert not res.success
    assert res.message == "Cannot spend 3 hit dice. Only 2 available."
    assert ch.model_dump() == before

    assert not rest.short_rest(-1).success
    assert ch.model_dump() == before

def test_short_rest_spends_hit_dice(content):
    ch, rest = _make(content)
    ch.hp_current = 1
    assert rest.available_hit_dice() == 5
    res = rest.short_rest(2)
    assert res.success
    assert rest.available_hit_dice() == 3
    assert res.hit_dice_spent == 2
    assert ch.hit_dice.current == 3
    # d10 + 2 per die, each at least 3
    assert 6 <= res.hit_points_restored <= 24
    assert ch.hp_current == 1 + res.hit_points_restored
    assert res.message == f"Short rest completed. Spent 2 hit dice and restored {res.hit_points_restored} hit points."

def test_each_hit_die_heals_at_least_one(content):
    ch, rest = _make(content, "wizard", 3, con=1)
    ch.hp_max = 20
    ch.hp_current = 1
    res = rest.short_rest(3)
    assert res.hit_points_restored == 3
    assert ch.hp_current == 4

def test_short_rest_healing_is_capped(content):
    ch, rest = _make(content)
    ch.hp_current = ch.hp_max - 1
    res = rest.short_rest(2)
    assert res.success
    assert ch.hp_current == ch.hp_max
    assert res.hit_points_restored == 1

def test_short_rest_recharges_short_features_only(content):
    ch, rest = _make(content, "barbarian", 3)
    ch.feature_uses.decrement_use("Rage")
    res = rest.short_rest()
    assert res.features_restored == []
    assert ch.feature_uses.remaining("Rage") == 2

    ch, rest = _make(content, "fighter", 3)
    ch.feature_uses.decrement_use("Second Wind")
    ch.feature_uses.decrement_use("Action Surge")
    res = rest.short_rest()
    assert set(res.features_restored) == {"Second Wind", "Action Surge"}
    assert ch.feature_uses.remaining("Action Surge") == 1

def test_bardic_inspiration_recharge_changes_at_fifth_level(content):
    ch, _ = _make(content, "bard", 4)
    assert ch.feature_uses.uses["Bardic Inspiration"].recharge == "long"
    assert ch.feature_uses.uses["Bardic Inspiration"].maximum == 2
    ch, _ = _make(content, "bard", 5)
    assert ch.feature_uses.uses["Bardic Inspiration"].recharge == "short"

def test_pact_slots_return_on_short_rest(content):
    ch, rest = _make(content, "warlock", 5)
    ch.spellcasting.slots.consume(3)
    ch.spellcasting.slots.consume(3)
    res = rest.short_rest()
    assert res.spell_slots_restored == ["Level 3"]
    assert ch.spellcasting.slots.current[3] == 2

    ch, rest = _make(content, "wizard", 5)
    ch.spellcasting.slots.consume(1)
    res = rest.short_rest()
    assert res.spell_slots_restored == []
    assert ch.spellcasting.slots.current[1] == 3

# ---------------------------------------------------------------- long rest

def test_long_rest_restores_half_hit_dice(content):
    ch, rest = _make(content)
    ch.hit_dice.current = 1
    ch.hp_current = 10

    res = rest.long_rest()
    assert res.success
    assert ch.hp_current == ch.hp_max
    assert res.hit_points_restored == ch.hp_max - 10
    assert res.hit_dice_restored == 2
    assert ch.hit_dice.current == 3
    assert ch.exhaustion_level == 0
    assert res.exhaustion_reduced is False
    assert res.message == f"Long rest completed. Restored {ch.hp_max - 10} hit points and 2 hit dice."

def test_long_rest_hit_dice_are_capped(content):
    ch, rest = _make(content)
    ch.hit_dice.current = 4
    res = rest.long_rest()
    assert res.hit_dice_restored == 1
    assert ch.hit_dice.current == 5

    ch, rest = _make(content, level=1)
    ch.hit_dice.current = 0
    res = rest.long_rest()
    assert ch.hit_dice.current == 1

def test_long_rest_heals_to_exhaustion_limited_maximum(content):
    ch, rest = _make(content)
    ch.exhaustion_level = 5
    ch.hp_current = 1
    res = rest.long_rest()
    assert ch.exhaustion_level == 4
    assert ch.hp_current == effective_max_hp(ch) == ch.hp_max // 2
    assert res.hit_points_restored == ch.hp_max // 2 - 1

def test_long_rest_restores_slots_and_features(content):
    ch, rest = _make(content, "cleric", 5)
    ch.spellcasting.slots.consume(3)
    ch.spellcasting.slots.consume(1)
    ch.feature_uses.decrement_use("Channel Divinity")
    res = rest.long_rest()
    assert res.spell_slots_restored == ["Level 1", "Level 3"]
    assert ch.spellcasting.slots.is_full()
    assert "Channel Divinity" in res.features_restored
    assert ch.feature_uses.remaining("Channel Divinity") == 1

def test_rogue_has_nothing_to_recharge(content):
    ch, rest = _make(content, "rogue", 5)
    res = rest.long_rest()
    assert res.success
    assert res.features_restored == []
    assert res.spell_slots_restored == []

# ---------------------------------------------------------------- features

def test_feature_uses_scale_with_level(content):
    ch, _ = _make(content, "monk", 2)
    assert ch.feature_uses.uses["Ki Points"].maximum == 2
    ch.level = 6
    logs = sync_class_features(content.get_class("monk"), ch)
    assert logs == []
    assert ch.feature_uses.uses["Ki Points"].maximum == 6
    # growing a pool does not refill it
    assert ch.feature_uses.remaining("Ki Points") == 2

def test_features_appear_at_min_level(content):
    ch, _ = _make(content, "fighter", 2)
    assert not ch.feature_uses.has("Action Surge")
    ch.level = 3
    logs = sync_class_features(content.get_class("fighter"), ch)
    assert ch.feature_uses.has("Action Surge")
    assert any("Action Surge" in line for line in logs)

def test_long_rest_with_full_slots_restores_nothing(content):
    ch, rest = _make(content, "wizard", 5)
    res = rest.long_rest()
    assert res.success
    assert res.spell_slots_restored == []
    assert not any("slots restored" in line for line in res.logs)
