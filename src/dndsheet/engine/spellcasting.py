from __future__ import annotations
from typing import Dict, List, Optional, Tuple, Union, TYPE_CHECKING
from pydantic import BaseModel, Field

from .models import Character, CasterConfig, SpellcastingState
from .policy import (
    CasterPolicy, SpellOpResult, policy_for, apply_overlay, unlocked_domain_spells,
    count_non_domain_prepared,
)
from .progression import proficiency_bonus, slots_for
from .schema_models import Spell, DomainDefinition, ClassDefinition
from .slots import SlotLedger

if TYPE_CHECKING:
    from .loader import ContentIndex

class CasterConfigError(ValueError):
    """Raised when the caller wires a spellcaster incorrectly (not a user-input problem)."""

class CastResult(BaseModel):
    cast: bool
    spell: Optional[str] = None
    level: int = 0
    remaining_slots: int = 0
    message: str = ""
    logs: List[str] = Field(default_factory=list)

class LearnManyResult(BaseModel):
    learned: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

class LevelUpResult(BaseModel):
    cantrips_learned: List[str] = Field(default_factory=list)
    spells_learned: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

class PreparationSummary(BaseModel):
    cantrips_known: int
    cantrips_maximum: int
    spells_prepared: int
    spells_maximum: int
    domain_spells_count: int

def new_spellcasting_state(cls: ClassDefinition, level: int,
                           domain: Optional[DomainDefinition] = None) -> SpellcastingState:
    sc = cls.spellcasting
    if sc is None:
        raise CasterConfigError(f"Class '{cls.id}' has no spellcasting")
    if domain is not None and not sc.domains:
        raise CasterConfigError(f"Class '{cls.id}' does not take a domain")
    config = CasterConfig(
        archetype=sc.archetype,
        access=sc.access,
        ability=sc.ability,
        progression=sc.progression,
        spell_list=sc.spell_list,
        domain_id=domain.id if domain else None,
        domain_spells={k: list(v) for k, v in domain.spells.items()} if domain else {},
    )
    return SpellcastingState(config=config, slots=SlotLedger.full(slots_for(sc.progression, level)))

class Spellcaster:
    """
    Character-facing spell API over one SpellcastingState.
    The caller persists the owning record after each mutating call.
    """

    def __init__(self, policy: CasterPolicy, state: SpellcastingState, level: int,
                 modifier: Optional[int] = None):
        self.policy = policy
        self.state = state
        self.level = level
        self.modifier = modifier
        self.state.prepared = apply_overlay(self.state.prepared, self.state.config.domain_spells, level)

    @classmethod
    def for_character(cls, content: "ContentIndex", ch: Character) -> "Spellcaster":
        if ch.spellcasting is None:
            raise CasterConfigError(f"{ch.name} is not a spellcaster")
        cdef = content.get_class(ch.clazz)
        if cdef.spellcasting is None:
            raise CasterConfigError(f"Class '{ch.clazz}' has no spellcasting")
        policy = policy_for(content.spells, cdef.spellcasting)
        return cls(policy, ch.spellcasting, ch.level, ch.ability_mod(ch.spellcasting.config.ability))

    @property
    def config(self) -> CasterConfig:
        return self.state.config

    def _require_modifier(self, modifier: Optional[int]) -> int:
        mod = modifier if modifier is not None else self.modifier
        if mod is None:
            raise CasterConfigError("Governing ability modifier was not supplied")
        return mod

    def update_modifier(self, modifier: int) -> None:
        self.modifier = modifier

    # ---------------------------------------------------------------- slots
    def cast(self, level: int) -> bool:
        return self.state.slots.consume(level)

    def cast_spell(self, name: str, level: Optional[int] = None) -> CastResult:
        sp = self.policy.catalog.find_by_name(name)
        if sp is None:
            msg = f"Spell \"{name}\" not found"
            return CastResult(cast=False, message=msg, logs=[f"[Spell] {msg}"])
        slot = sp.level if level is None else level
        if sp.is_cantrip:
            slot = 0
        elif not 1 <= slot <= 9 or slot < sp.level:
            msg = f"{sp.name} needs a slot of level {sp.level} or higher"
            return CastResult(cast=False, spell=sp.name, level=slot, message=msg, logs=[f"[Spell] {msg}"])
        if not self.cast(slot):
            msg = f"Not enough spell slots of level {slot} to cast {sp.name}"
            return CastResult(cast=False, spell=sp.name, level=slot, remaining_slots=0,
                              message=msg, logs=[f"[Spell] {msg}"])
        remaining = self.state.slots.available(slot) if slot else 0
        msg = f"Cast {sp.name} at level {slot}" + (f" ({remaining} slot(s) left)" if slot else "")
        return CastResult(cast=True, spell=sp.name, level=slot, remaining_slots=remaining,
                          message=msg, logs=[f"[Spell] {msg}"])

    def restore_all(self) -> None:
        self.state.slots.restore_all()

    def restore_one(self, level: int) -> None:
        self.state.slots.restore_one(level)

    def get_current_slots(self) -> Dict[int, int]:
        return dict(self.state.slots.current)

    def get_max_slots(self) -> Dict[int, int]:
        return dict(self.state.slots.maximum)

    def can_cast_at(self, level: int) -> bool:
        return level == 0 or self.state.slots.max_for(level) > 0

    # ---------------------------------------------------------------- spells
    def prepared(self, level: int) -> List[str]:
        return list(self.state.prepared.get(level, []))

    def known(self, level: int) -> List[str]:
        return list(self.state.known.get(level, []))

    def prepare_spells(self, level: int, names: List[str], modifier: Optional[int] = None) -> SpellOpResult:
        mod = self._require_modifier(modifier)
        return self.policy.prepare(self.state, self.level, mod, level, names)

    def learn_spell(self, name: str, level: Optional[int] = None) -> SpellOpResult:
        mod = self._require_modifier(None)
        return self.policy.learn(self.state, self.level, mod, name, level)

    def learn_spells(self, spells: List[Union[str, Tuple[str, int]]]) -> LearnManyResult:
        out = LearnManyResult()
        for entry in spells:
            name, level = (entry, None) if isinstance(entry, str) else entry
            res = self.learn_spell(name, level)
            (out.learned if res.success else out.failed).append(name)
            out.logs += res.logs
        return out

    def forget_spell(self, name: str, level: int) -> SpellOpResult:
        return self.policy.forget(self.state, name, level)

    def available_to_learn(self, level: int) -> List[Spell]:
        if self.config.access != "known":
            return []
        return self.policy.available_to_learn(self.state, level)

    def learning_limits(self) -> Dict[str, int]:
        mod = self._require_modifier(None)
        return {
            "cantrips_known": len(self.state.known.get(0, [])),
            "cantrips_maximum": self.policy.cantrip_limit(self.level),
            "spells_known": sum(len(v) for lvl, v in self.state.known.items() if lvl > 0),
            "spells_maximum": self.policy.known_limit(self.level, mod),
            "max_spell_level": self.policy.max_castable_level(self.level),
        }

    def search(self, query: str, level: Optional[int] = None) -> List[Spell]:
        return self.policy.catalog.search(query, level, self.config.spell_list)

    def spell_details(self, name: str) -> Optional[Spell]:
        return self.policy.catalog.find_by_name(name)

    def ritual_spells(self) -> List[Spell]:
        out: List[Spell] = []
        for lvl in range(1, 10):
            for n in self.state.prepared.get(lvl, []):
                sp = self.policy.catalog.find_by_name(n)
                if sp and sp.ritual:
                    out.append(sp)
        return out

    def preparation_summary(self) -> PreparationSummary:
        mod = self._require_modifier(None)
        domain = unlocked_domain_spells(self.config.domain_spells, self.level)
        return PreparationSummary(
            cantrips_known=len(self.state.prepared.get(0, [])),
            cantrips_maximum=self.policy.cantrip_limit(self.level),
            spells_prepared=count_non_domain_prepared(self.state, self.level),
            spells_maximum=self.policy.prepared_limit(self.level, mod),
            domain_spells_count=sum(len(v) for v in domain.values()),
        )

    # ---------------------------------------------------------------- derived numbers
    def save_dc(self, modifier: Optional[int] = None) -> int:
        return 8 + proficiency_bonus(self.level) + self._require_modifier(modifier)

    def attack_bonus(self, modifier: Optional[int] = None) -> int:
        return proficiency_bonus(self.level) + self._require_modifier(modifier)

    # ---------------------------------------------------------------- domain
    def _require_domain_caster(self) -> None:
        if not self.policy.spec.domains:
            raise CasterConfigError(f"{self.config.archetype.value} casters have no domain spells")

    def domain_spells(self) -> Dict[int, List[str]]:
        """Unlocked domain spells keyed by spell level."""
        self._require_domain_caster()
        return unlocked_domain_spells(self.config.domain_spells, self.level)

    def update_domain_spells(self, domain: DomainDefinition) -> List[str]:
        self._require_domain_caster()
        old = unlocked_domain_spells(self.config.domain_spells, self.level)
        new_table = {k: list(v) for k, v in domain.spells.items()}
        new = unlocked_domain_spells(new_table, self.level)
        for lvl, names in old.items():
            keep = set(new.get(lvl, []))
            self.state.prepared[lvl] = [n for n in self.state.prepared.get(lvl, []) if n not in names or n in keep]
        self.state.config = self.config.model_copy(update={"domain_id": domain.id, "domain_spells": new_table})
        self.state.prepared = apply_overlay(self.state.prepared, new_table, self.level)
        return [f"[Spell] Domain set to {domain.name}"]

    # ---------------------------------------------------------------- progression
    def level_up(self, new_level: int) -> LevelUpResult:
        old_level = self.level
        self.level = new_level
        self.state.slots.set_maximum(self.policy.slots_for_level(new_level))
        self.state.prepared = apply_overlay(self.state.prepared, self.config.domain_spells, new_level)
        out = LevelUpResult(logs=[f"[Spell] Level {old_level} -> {new_level}"])
        if self.config.access == "known":
            cantrips, spells, errors = self.policy.auto_learn(self.state, new_level, self._require_modifier(None))
            out.cantrips_learned, out.spells_learned, out.errors = cantrips, spells, errors
            for n in cantrips + spells:
                out.logs.append(f"[Spell] Learned {n}")
            for e in errors:
                out.logs.append(f"[Spell] {e}")
        return out

    def learn_starting_spells(self) -> LevelUpResult:
        """Known-spell casters start with their full allowance for the current level."""
        out = LevelUpResult()
        if self.config.access != "known":
            return out
        cantrips, spells, errors = self.policy.auto_learn(self.state, self.level, self._require_modifier(None))
        out.cantrips_learned, out.spells_learned, out.errors = cantrips, spells, errors
        out.logs = [f"[Spell] Starting spell: {n}" for n in cantrips + spells]
        return out

