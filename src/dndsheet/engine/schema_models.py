from __future__ import annotations
from typing import Optional, Literal, List, Dict, Union
from pydantic import BaseModel, Field, model_validator

from .models import CasterArchetype, AbilityKey, AccessMode, ProgressionClass
from .features import Recharge


SpellSchool = Literal[
    "abjuration", "conjuration", "divination", "enchantment",
    "evocation", "illusion", "necromancy", "transmutation",
]

class Spell(BaseModel):
    id: str
    name: str
    level: int = Field(ge=0, le=9)
    school: SpellSchool
    casting_time: str = "1 action"
    range: str = "Self"
    components: List[Literal["V", "S", "M"]] = Field(default_factory=list)
    material: Optional[str] = None
    duration: str = "Instantaneous"
    description: str = ""
    higher_level: Optional[str] = None
    ritual: bool = False
    concentration: bool = False
    lists: List[str] = Field(default_factory=list)   # class spell lists this spell appears on

    @property
    def is_cantrip(self) -> bool:
        return self.level == 0

class RestFeatureSpec(BaseModel):
    """A limited-use class feature and the rest that refills it."""
    name: str
    min_level: int = 1
    recharge: Recharge = "long"
    # feature switches to short-rest recharge from this level (e.g. Bardic Inspiration at 5)
    short_from_level: Optional[int] = None
    # fixed count, formula over level/modifier, or a level-threshold table
    uses: Union[int, str, Dict[int, int]] = 1
    uses_ability: Optional[AbilityKey] = None

    def recharge_at(self, level: int) -> Recharge:
        if self.short_from_level is not None and level >= self.short_from_level:
            return "short"
        return self.recharge

class SpellcastingSpec(BaseModel):
    archetype: CasterArchetype
    ability: AbilityKey
    progression: ProgressionClass
    access: AccessMode
    spell_list: str
    min_level: int = 1
    cantrips_known: Dict[int, int] = Field(default_factory=dict)
    # total leveled spells a known-spell caster may hold, over level/modifier
    spells_known: Optional[Union[int, str, Dict[int, int]]] = None
    # active non-domain leveled spells, over level/modifier
    preparation: Optional[str] = None
    domains: bool = False

    @model_validator(mode="after")
    def _validate(self):
        errs: list[str] = []
        if self.access == "known" and self.spells_known is None:
            errs.append("known-spell casters need 'spells_known'")
        if self.access == "prepared" and not self.preparation:
            errs.append("prepared casters need a 'preparation' formula")
        if self.domains and self.access != "prepared":
            errs.append("domain spells are only supported for prepared casters")
        for lvl, n in self.cantrips_known.items():
            if not 1 <= lvl <= 20:
                errs.append(f"cantrips_known threshold {lvl} outside 1..20")
            if n < 0:
                errs.append(f"cantrips_known[{lvl}] must be >= 0")
        if errs:
            raise ValueError("; ".join(errs))
        return self

class ClassDefinition(BaseModel):
    id: str
    name: str
    hit_die: Literal[6, 8, 10, 12] = 8
    rest_features: List[RestFeatureSpec] = Field(default_factory=list)
    spellcasting: Optional[SpellcastingSpec] = None

    @model_validator(mode="after")
    def _validate(self):
        errs: list[str] = []
        seen: set[str] = set()
        for rf in self.rest_features:
            if rf.name in seen:
                errs.append(f"duplicate rest feature '{rf.name}'")
            seen.add(rf.name)
            if not 1 <= rf.min_level <= 20:
                errs.append(f"rest feature '{rf.name}' min_level must be 1..20")
        if errs:
            raise ValueError("; ".join(errs))
        return self

class DomainDefinition(BaseModel):
    id: str
    name: str
    class_id: str = "cleric"
    # character level at which the spells unlock -> spell names
    spells: Dict[int, List[str]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate(self):
        errs: list[str] = []
        for lvl, names in self.spells.items():
            if not 1 <= lvl <= 20:
                errs.append(f"domain unlock level {lvl} outside 1..20")
            if len(set(names)) != len(names):
                errs.append(f"duplicate domain spell at level {lvl}")
        if errs:
            raise ValueError("; ".join(errs))
        return self
