from __future__ import annotations
from typing import Optional, Literal, List, Dict
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, computed_field

from .features import FeatureUses
from .slots import SlotLedger

class AbilityScore(BaseModel):
    base: int = 10
    temp: int = 0
    def score(self) -> int: return max(0, self.base + self.temp)
    def mod(self) -> int: return (self.score() - 10) // 2

class Abilities(BaseModel):
    str_: AbilityScore = Field(default_factory=AbilityScore)
    dex: AbilityScore = Field(default_factory=AbilityScore)
    con: AbilityScore = Field(default_factory=AbilityScore)
    int_: AbilityScore = Field(default_factory=AbilityScore)
    wis: AbilityScore = Field(default_factory=AbilityScore)
    cha: AbilityScore = Field(default_factory=AbilityScore)

    def get(self, name: str) -> AbilityScore:
        key = "str_" if name == "str" else ("int_" if name == "int" else name)
        return getattr(self, key)

    @classmethod
    def from_scores(cls, scores: Dict[str, int]) -> "Abilities":
        ab = cls()
        for k, v in scores.items():
            ab.get(k.lower()).base = int(v)
        return ab

AbilityKey = Literal["str", "dex", "con", "int", "wis", "cha"]

class CasterArchetype(str, Enum):
    WIZARD = "wizard"
    CLERIC = "cleric"
    DRUID = "druid"
    PALADIN = "paladin"
    RANGER = "ranger"
    SORCERER = "sorcerer"
    BARD = "bard"
    WARLOCK = "warlock"
    ELDRITCH_KNIGHT = "eldritch_knight"

AccessMode = Literal["prepared", "known"]
ProgressionClass = Literal["full", "half", "third", "pact"]

# spell level (0-9) -> spell names
SpellLevels = Dict[int, List[str]]

def empty_spell_levels() -> SpellLevels:
    return {lvl: [] for lvl in range(10)}

class CasterConfig(BaseModel):
    """Fixed at character creation; replaced wholesale only when a domain is attached."""
    model_config = ConfigDict(frozen=True)

    archetype: CasterArchetype
    access: AccessMode
    ability: AbilityKey
    progression: ProgressionClass
    spell_list: str
    domain_id: Optional[str] = None
    domain_spells: Dict[int, List[str]] = Field(default_factory=dict)

    @property
    def has_domain(self) -> bool:
        return self.domain_id is not None

class SpellcastingState(BaseModel):
    config: CasterConfig
    slots: SlotLedger = Field(default_factory=SlotLedger)
    known: SpellLevels = Field(default_factory=empty_spell_levels)
    prepared: SpellLevels = Field(default_factory=empty_spell_levels)

class HitDicePool(BaseModel):
    current: int = 1
    maximum: int = 1
    size: int = 8

class Character(BaseModel):
    id: str
    name: str
    clazz: str
    level: int = 1
    abilities: Abilities = Field(default_factory=Abilities)
    hp_max: int = 8
    hp_current: int = 8
    hp_temp: int = 0
    speed_land: int = 30
    hit_dice: HitDicePool = Field(default_factory=HitDicePool)
    exhaustion_level: int = 0
    feature_uses: FeatureUses = Field(default_factory=FeatureUses)
    spellcasting: Optional[SpellcastingState] = None

    @computed_field
    @property
    def is_caster(self) -> bool:
        return self.spellcasting is not None

    @computed_field
    @property
    def is_dead(self) -> bool:
        return self.exhaustion_level >= 6

    def ability_mod(self, name: str) -> int:
        return self.abilities.get(name).mod()
