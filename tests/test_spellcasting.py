from pathlib import Path
import pytest
from dndsheet.engine.loader import load_content, ContentIndex
from dndsheet.engine.chargen import CharBuildState, build_character
from dndsheet.engine.schema_models import ClassDefinition, SpellcastingSpec, DomainDefinition
from dndsheet.engine.policy import apply_overlay, unlocked_domain_spells, policy_for
from dndsheet.engine.spellcasting import (
    Spellcaster, CasterConfigError, new_spellcasting_state,
)

CONTENT_DIR = Path(__file__).resolve().parents[1] / "src" / "dndsheet" / "content"

CLERIC_L1 = [
    "Bless", "Command", "Cure Wounds", "Detect Evil and Good", "Detect Magic", "Guiding Bolt",
    "Healing Word", "Inflict Wounds", "Protection from Evil and Good", "Sanctuary", "Shield of Faith",
]

@pytest.fixture(scope="module")
def content():
    return load_content(CONTENT_DIR)

def _make(content, clazz, level, domain=None, **scores):
    abilities = {"str": 10, "dex": 12, "con": 14, "int": 16, "wis": 16, "cha": 14}
    abilities.update(scores)
    ch, _ = build_character(content, CharBuildState(name="Tess", clazz=clazz, level=level,
                                                    domain=domain, abilities=abilities))
    return ch, Spellcaster.for_character(content, ch)

# ---------------------------------------------------------------- preparation

def test_cleric_preparation_limit_is_atomic(content):
    _, caster = _make(content, "cleric", 5)
    assert caster.policy.prepared_limit(5, 3) == 8

    res = caster.prepare_spells(1, CLERIC_L1[:9])
    assert not res.success
    assert caster.prepared(1) == []

    res = caster.prepare_spells(1, CLERIC_L1[:8])
    assert res.success
    assert caster.prepared(1) == CLERIC_L1[:8]

def test_preparation_limit_counts_every_level(content):
    _, caster = _make(content, "cleric", 5)
    assert caster.prepare_spells(1, CLERIC_L1[:6]).success
    assert not caster.prepare_spells(2, ["Aid", "Augury", "Silence"]).success
    assert caster.prepared(2) == []
    assert caster.prepare_spells(2, ["Aid", "Augury"]).success
    # replacing a level frees its old entries first
    assert caster.prepare_spells(1, CLERIC_L1[:4]).success
    assert caster.preparation_summary().spells_prepared == 6

def test_preparation_rejects_unavailable_and_duplicate_names(content):
    _, caster = _make(content, "cleric", 5)
    res = caster.prepare_spells(1, ["Magic Missile"])
    assert not res.success
    assert "Magic Missile" in res.message
    assert not caster.prepare_spells(1, ["Bless", "bless"]).success
    assert not caster.prepare_spells(10, ["Bless"]).success
    assert caster.prepared(1) == []

def test_prepare_names_are_case_insensitive(content):
    _, caster = _make(content, "cleric", 1)
    assert caster.prepare_spells(1, ["guiding bolt"]).success
    assert caster.prepared(1) == ["Guiding Bolt"]

def test_cantrip_preparation_replaces_list(content):
    _, caster = _make(content, "cleric", 5)
    assert caster.prepare_spells(0, ["Guidance", "Light", "Mending", "Sacred Flame"]).success
    assert not caster.prepare_spells(0, ["Guidance", "Light", "Mending", "Sacred Flame", "Thaumaturgy"]).success
    assert len(caster.prepared(0)) == 4
    assert caster.prepare_spells(0, ["Thaumaturgy"]).success
    assert caster.prepared(0) == ["Thaumaturgy"]

def test_prepare_needs_a_modifier():
    content = load_content(CONTENT_DIR)
    cdef = content.get_class("cleric")
    state = new_spellcasting_state(cdef, 3)
    caster = Spellcaster(policy_for(content.spells, cdef.spellcasting), state, 3)
    with pytest.raises(CasterConfigError):
        caster.prepare_spells(1, ["Bless"])
    assert caster.prepare_spells(1, ["Bless"], modifier=2).success
    with pytest.raises(CasterConfigError):
        caster.save_dc()
    assert caster.save_dc(3) == 13
    assert caster.attack_bonus(3) == 5
    caster.update_modifier(1)
    assert caster.save_dc() == 11
    assert caster.preparation_summary().spells_maximum == 4

# ---------------------------------------------------------------- domain overlay

def test_life_domain_spells_are_always_prepared(content):
    _, caster = _make(content, "cleric", 5, domain="life")
    assert caster.prepared(1) == ["Bless", "Cure Wounds"]
    assert caster.prepared(2) == ["Lesser Restoration", "Spiritual Weapon"]
    assert caster.prepared(3) == ["Beacon of Hope", "Revivify"]
    assert caster.prepared(4) == []
    assert caster.preparation_summary().domain_spells_count == 6

def test_domain_spells_do_not_count_against_limit(content):
    _, caster = _make(content, "cleric", 5, domain="life")
    others = [n for n in CLERIC_L1 if n not in ("Bless", "Cure Wounds")]
    assert caster.prepare_spells(1, others[:8] + ["Bless"]).success
    assert caster.preparation_summary().spells_prepared == 8

    # leaving domain spells out of a request keeps them prepared
    assert caster.prepare_spells(1, ["Command"]).success
    assert set(caster.prepared(1)) == {"Bless", "Cure Wounds", "Command"}

def test_off_list_domain_spells_survive_repreparing(content):
    # Identify is a Knowledge domain spell but not on the cleric list
    _, caster = _make(content, "cleric", 1, domain="knowledge")
    assert caster.prepared(1) == ["Command", "Identify"]
    res = caster.prepare_spells(1, caster.prepared(1) + ["Bless"])
    assert res.success, res.message
    assert res.message == "Prepared 1 level 1 spell(s)"
    assert caster.prepared(1) == ["Command", "Identify", "Bless"]
    assert caster.preparation_summary().spells_prepared == 1

def test_overlay_is_pure_and_idempotent():
    table = {1: ["Bless", "Cure Wounds"], 3: ["Lesser Restoration", "Spiritual Weapon"]}
    prepared = {0: [], 1: ["Command"], 2: []}
    once = apply_overlay(prepared, table, 3)
    twice = apply_overlay(once, table, 3)
    assert once == twice
    assert prepared == {0: [], 1: ["Command"], 2: []}
    assert once[1] == ["Command", "Bless", "Cure Wounds"]
    assert once[2] == ["Lesser Restoration", "Spiritual Weapon"]

def test_unlocked_domain_spells_follow_character_level():
    table = {1: ["Bless"], 3: ["Aid"], 5: ["Revivify"]}
    assert unlocked_domain_spells(table, 1) == {1: ["Bless"]}
    assert unlocked_domain_spells(table, 4) == {1: ["Bless"], 2: ["Aid"]}
    assert unlocked_domain_spells(table, 5)[3] == ["Revivify"]

def test_domain_queries_require_domain_caster(content):
    _, wizard = _make(content, "wizard", 3)
    with pytest.raises(CasterConfigError):
        wizard.domain_spells()
    with pytest.raises(CasterConfigError):
        wizard.update_domain_spells(content.get_domain("life"))

def test_switching_domain_replaces_overlay(content):
    _, caster = _make(content, "cleric", 3, domain="life")
    assert caster.prepare_spells(1, ["Sanctuary"]).success
    caster.update_domain_spells(content.get_domain("knowledge"))
    assert caster.config.domain_id == "knowledge"
    assert set(caster.prepared(1)) == {"Sanctuary", "Command", "Identify"}
    assert set(caster.prepared(2)) == {"Augury", "Suggestion"}
    assert caster.domain_spells() == {1: ["Command", "Identify"], 2: ["Augury", "Suggestion"]}

def test_wizard_cannot_take_a_domain(content):
    with pytest.raises(CasterConfigError):
        new_spellcasting_state(content.get_class("wizard"), 1, content.get_domain("life"))
    with pytest.raises(CasterConfigError):
        new_spellcasting_state(content.get_class("fighter"), 1)

# ---------------------------------------------------------------- known spells

@pytest.fixture
def small_known_class():
    return ClassDefinition(
        id="adept",
        name="Adept",
        hit_die=6,
        spellcasting=SpellcastingSpec(
            archetype="sorcerer", ability="cha", progression="full", access="known",
            spell_list="sorcerer", cantrips_known={1: 3}, spells_known=2,
        ),
    )

def test_known_caster_starting_spells(content, small_known_class):
    index = ContentIndex(spells=content.spells, classes={"adept": small_known_class}, domains={})
    ch, logs = build_character(index, CharBuildState(name="Ash", clazz="adept", level=1))
    caster = Spellcaster.for_character(index, ch)

    assert len(caster.known(0)) == 3
    assert len(caster.known(1)) == 2
    # nothing to prepare separately
    assert caster.prepared(1) == caster.known(1)
    assert any("Starting spell" in line for line in logs)

    res = caster.learn_spell(caster.known(1)[0])
    assert not res.success
    assert "already known" in res.message
    assert len(caster.known(1)) == 2

def test_wizard_learning_rules(content):
    _, wizard = _make(content, "wizard", 1)
    assert len(wizard.known(0)) == 3
    assert len(wizard.known(1)) == 6
    # spellbook spells still need preparing
    assert wizard.prepared(1) == []
    assert wizard.prepared(0) == wizard.known(0)

    assert not wizard.learn_spell("Cure Wounds").success          # not on the list
    assert not wizard.learn_spell("Fireball").success             # above castable level
    assert not wizard.learn_spell("Nonexistent Spell").success
    assert not wizard.learn_spell("Shield", 2).success            # level mismatch


    spare = wizard.available_to_learn(1)[0].name
    res = wizard.learn_spell(spare)
    assert not res.success
    assert "maximum 6" in res.message

    dropped = wizard.known(1)[0]
    assert wizard.forget_spell(dropped, 1).success
    assert wizard.learn_spell(spare).success
    assert spare in wizard.known(1)
    assert dropped not in wizard.known(1)

def test_wizard_prepares_only_known_spells(content):
    _, wizard = _make(content, "wizard", 1)
    known = wizard.known(1)
    unknown = wizard.available_to_learn(1)[0].name
    assert not wizard.prepare_spells(1, [unknown]).success
    # int 16 at level 1 -> 4 prepared
    assert wizard.prepare_spells(1, known[:4]).success
    assert not wizard.prepare_spells(1, known[:5]).success

def test_forget_removes_prepared_entry(content):
    _, wizard = _make(content, "wizard", 1)
    name = wizard.known(1)[0]
    assert wizard.prepare_spells(1, [name]).success
    assert wizard.forget_spell(name, 1).success
    assert name not in wizard.prepared(1)
    assert not wizard.forget_spell(name, 1).success

def test_learn_spells_batch(content):
    _, wizard = _make(content, "wizard", 1)
    wizard.forget_spell(wizard.known(1)[0], 1)
    target = wizard.available_to_learn(1)[0].name
    out = wizard.learn_spells([(target, 1), "Fireball"])
    assert out.learned == [target]
    assert out.failed == ["Fireball"]
    assert len(out.logs) == 2

def test_prepared_caster_does_not_learn(content):
    _, caster = _make(content, "cleric", 3)
    res = caster.learn_spell("Bless")
    assert not res.success
    assert caster.available_to_learn(1) == []

def test_warlock_pact_slots_and_learning(content):
    _, warlock = _make(content, "warlock", 3)
    assert {k: v for k, v in warlock.get_max_slots().items() if v} == {2: 2}
    assert len(warlock.known(0)) == 2
    assert sum(len(warlock.known(l)) for l in range(1, 10)) == 4

# ---------------------------------------------------------------- casting

def test_cast_spell_by_name(content):
    _, wizard = _make(content, "wizard", 5)
    res = wizard.cast_spell("fireball")
    assert res.cast and res.spell == "Fireball" and res.level == 3
    assert res.remaining_slots == 1

    res = wizard.cast_spell("Fireball", 2)
    assert not res.cast
    assert wizard.get_current_slots()[3] == 1

    res = wizard.cast_spell("Magic Missile", 3)
    assert res.cast and res.remaining_slots == 0
    assert not wizard.cast_spell("Fireball").cast

    assert not wizard.cast_spell("Unknown Thing").cast
    # cantrips are free
    assert wizard.cast_spell("Fire Bolt").cast
    assert wizard.get_current_slots()[3] == 0

def test_can_cast_at(content):
    _, wizard = _make(content, "wizard", 3)
    assert wizard.can_cast_at(0)
    assert wizard.can_cast_at(2)
    assert not wizard.can_cast_at(3)

def test_search_is_limited_to_class_list(content):
    _, wizard = _make(content, "wizard", 5)
    names = {sp.name for sp in wizard.search("fire")}
    assert {"Fire Bolt", "Fireball"} <= names
    assert "Produce Flame" not in names
    assert [sp.name for sp in wizard.search("FIREBALL")] == ["Fireball"]
    assert all(sp.level == 3 for sp in wizard.search("fire", 3))
    assert all(sp.school == "evocation" for sp in wizard.search("evocation"))

def test_spell_details_and_rituals(content):
    _, wizard = _make(content, "wizard", 1)
    sp = wizard.spell_details("detect magic")
    assert sp is not None and sp.ritual
    assert wizard.spell_details("Nope") is None

    assert wizard.ritual_spells() == []
    assert wizard.prepare_spells(1, ["Detect Magic"]).success
    assert [s.name for s in wizard.ritual_spells()] == ["Detect Magic"]

def test_learning_limits(content):
    _, wizard = _make(content, "wizard", 3)
    assert wizard.learning_limits() == {
        "cantrips_known": 3,
        "cantrips_maximum": 3,
        "spells_known": 10,
        "spells_maximum": 10,
        "max_spell_level": 2,
    }

# ---------------------------------------------------------------- level up

def test_wizard_level_up_grows_slots_and_spellbook(content):
    _, wizard = _make(content, "wizard", 1)
    wizard.cast(1)
    res = wizard.level_up(3)
    assert wizard.get_max_slots()[1] == 4
    assert wizard.get_max_slots()[2] == 2
    # new maximums do not refill current slots
    assert wizard.get_current_slots()[1] == 1
    assert wizard.get_current_slots()[2] == 0
    assert res.cantrips_learned == []
    assert len(res.spells_learned) == 4
    assert sum(len(wizard.known(l)) for l in range(1, 10)) == 10

def test_level_up_unlocks_domain_spells(content):
    _, caster = _make(content, "cleric", 2, domain="life")
    assert caster.prepared(2) == []
    caster.level_up(3)
    assert caster.prepared(2) == ["Lesser Restoration", "Spiritual Weapon"]

def test_domain_definition_attached_through_state(content):
    dom = DomainDefinition(id="test", name="Test", spells={1: ["Sanctuary"]})
    state = new_spellcasting_state(content.get_class("cleric"), 1, dom)
    assert state.config.domain_id == "test"
    assert state.config.has_domain

def test_rejected_learn_leaves_known_untouched(content):
    ch, wizard = _make(content, "wizard", 1)
    del ch.spellcasting.known[3]
    before = {lvl: list(names) for lvl, names in ch.spellcasting.known.items()}
    assert not wizard.learn_spell("Fireball").success
    assert ch.spellcasting.known == before
    assert 3 not in ch.spellcasting.known
