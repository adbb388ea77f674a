from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import uuid4
from dndsheet.engine.models import Character, Abilities, HitDicePool
from dndsheet.engine.loader import ContentIndex
from dndsheet.engine.rest import sync_class_features
from dndsheet.engine.spellcasting import Spellcaster, new_spellcasting_state

@dataclass
class CharBuildState:
    name: str = "Hero"
    clazz: str = "fighter"
    level: int = 1
    domain: Optional[str] = None
    abilities: Dict[str, int] = field(default_factory=lambda: {"str":15,"dex":12,"con":14,"int":10,"wis":12,"cha":8})
    speed_land: int = 30

def validate_character_picks(content: ContentIndex, picks: CharBuildState) -> tuple[bool, str]:
    if picks.clazz not in content.classes:
        return False, f"Class '{picks.clazz}' does not exist."
    if not 1 <= picks.level <= 20:
        return False, f"Level {picks.level} must be between 1 and 20."
    for k in ("str", "dex", "con", "int", "wis", "cha"):
        if k not in picks.abilities:
            return False, f"Missing ability score '{k}'."
        if not 1 <= picks.abilities[k] <= 30:
            return False, f"Ability score {k}={picks.abilities[k]} must be between 1 and 30."
    cdef = content.classes[picks.clazz]
    sc = cdef.spellcasting
    if picks.domain:
        if sc is None or not sc.domains:
            return False, f"Class '{cdef.name}' does not choose a domain."
        if picks.domain not in content.domains:
            return False, f"Domain '{picks.domain}' does not exist."
        if content.domains[picks.domain].class_id != cdef.id:
            return False, f"Domain '{picks.domain}' is not available to {cdef.name}."
    return True, ""

def hit_points_for(hit_die: int, level: int, con_mod: int) -> int:
    # max at 1st level, fixed average afterwards
    first = max(1, hit_die + con_mod)
    later = max(1, hit_die // 2 + 1 + con_mod) * (level - 1)
    return first + later

def build_character(content: ContentIndex, picks: CharBuildState) -> tuple[Character, list[str]]:
    """
    Create a ready-to-play character: hit dice and HP from the class, limited-use
    features for the level, and (for casters) a full slot ledger, domain overlay
    and starting spells for known-spell casters.
    """
    ok, err = validate_character_picks(content, picks)
    if not ok:
        raise ValueError(err)

    cdef = content.get_class(picks.clazz)
    abilities = Abilities.from_scores(picks.abilities)
    hp = hit_points_for(cdef.hit_die, picks.level, abilities.con.mod())
    ch = Character(
        id=f"pc.{uuid4().hex[:8]}",
        name=picks.name,
        clazz=cdef.id,
        level=picks.level,
        abilities=abilities,
        hp_max=hp,
        hp_current=hp,
        speed_land=picks.speed_land,
        hit_dice=HitDicePool(current=picks.level, maximum=picks.level, size=cdef.hit_die),
    )
    logs = [f"[Build] {ch.name}, level {ch.level} {cdef.name} ({hp} HP, {ch.level}d{cdef.hit_die} hit dice)"]
    logs += sync_class_features(cdef, ch)

    sc = cdef.spellcasting
    if sc is not None and picks.level >= sc.min_level:
        domain = content.get_domain(picks.domain) if picks.domain else None
        ch.spellcasting = new_spellcasting_state(cdef, picks.level, domain)
        caster = Spellcaster.for_character(content, ch)
        logs += caster.learn_starting_spells().logs
        if domain:
            logs.append(f"[Build] Domain: {domain.name}")
    return ch, logs
