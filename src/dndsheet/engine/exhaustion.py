from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple
from pydantic import BaseModel, Field

from .models import Character

MAX_EXHAUSTION = 6

ABILITY_CHECK_DISADVANTAGE = "Disadvantage on ability checks"
SPEED_HALVED = "Speed halved"
ATTACK_SAVE_DISADVANTAGE = "Disadvantage on attack rolls and saving throws"
HP_MAX_HALVED = "Hit point maximum halved"
SPEED_ZERO = "Speed reduced to 0"
DEATH = "Death"

@dataclass(frozen=True)
class ExhaustionLevel:
    level: int
    name: str
    description: str
    # what a sheet shows at this level; level 6 shows only death
    effects: Tuple[str, ...]
    # every effect in force at this level and all lower ones
    cumulative: Tuple[str, ...]

EXHAUSTION_TABLE: Tuple[ExhaustionLevel, ...] = (
    ExhaustionLevel(0, "No Exhaustion", "No exhaustion effects", (), ()),
    ExhaustionLevel(1, "Light Exhaustion", "Disadvantage on ability checks",
                    (ABILITY_CHECK_DISADVANTAGE,),
                    (ABILITY_CHECK_DISADVANTAGE,)),
    ExhaustionLevel(2, "Moderate Exhaustion", "Speed halved",
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED),
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED)),
    ExhaustionLevel(3, "Heavy Exhaustion", "Disadvantage on attack rolls and saving throws",
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE),
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE)),
    ExhaustionLevel(4, "Severe Exhaustion", "Hit point maximum halved",
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE, HP_MAX_HALVED),
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE, HP_MAX_HALVED)),
    ExhaustionLevel(5, "Near Death", "Speed reduced to 0",
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE, HP_MAX_HALVED, SPEED_ZERO),
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE, HP_MAX_HALVED, SPEED_ZERO)),
    ExhaustionLevel(6, "Death", "Character dies",
                    (DEATH,),
                    (ABILITY_CHECK_DISADVANTAGE, SPEED_HALVED, ATTACK_SAVE_DISADVANTAGE, HP_MAX_HALVED, SPEED_ZERO, DEATH)),
)

def clamp_exhaustion(level: int) -> int:
    return max(0, min(MAX_EXHAUSTION, int(level)))

def exhaustion_info(level: int) -> ExhaustionLevel:
    return EXHAUSTION_TABLE[clamp_exhaustion(level)]

def effects_for(level: int) -> List[str]:
    return list(exhaustion_info(level).effects)

class ExhaustionChange(BaseModel):
    previous_level: int
    new_level: int
    effects: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

def _set_level(ch: Character, level: int) -> ExhaustionChange:
    prev = ch.exhaustion_level
    ch.exhaustion_level = clamp_exhaustion(level)
    info = exhaustion_info(ch.exhaustion_level)
    logs = [f"[Exh] {ch.name}: exhaustion {prev} -> {ch.exhaustion_level} ({info.name})"]
    if ch.exhaustion_level >= MAX_EXHAUSTION:
        logs.append(f"[Exh] {ch.name} has died of exhaustion")
    return ExhaustionChange(previous_level=prev, new_level=ch.exhaustion_level,
                            effects=list(info.effects), logs=logs)

def add_exhaustion(ch: Character, levels: int = 1) -> ExhaustionChange:
    return _set_level(ch, ch.exhaustion_level + max(0, levels))

def remove_exhaustion(ch: Character, levels: int = 1) -> ExhaustionChange:
    return _set_level(ch, ch.exhaustion_level - max(0, levels))

# Derived stats: pure lookups, never mutate the character

def effective_max_hp(ch: Character) -> int:
    if HP_MAX_HALVED in exhaustion_info(ch.exhaustion_level).cumulative:
        return ch.hp_max // 2
    return ch.hp_max

def effective_speed(ch: Character) -> int:
    eff = exhaustion_info(ch.exhaustion_level).cumulative
    if SPEED_ZERO in eff:
        return 0
    if SPEED_HALVED in eff:
        return ch.speed_land // 2
    return ch.speed_land

def has_ability_check_disadvantage(ch: Character) -> bool:
    return ABILITY_CHECK_DISADVANTAGE in exhaustion_info(ch.exhaustion_level).cumulative

def has_attack_and_save_disadvantage(ch: Character) -> bool:
    return ATTACK_SAVE_DISADVANTAGE in exhaustion_info(ch.exhaustion_level).cumulative
