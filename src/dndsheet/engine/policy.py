from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from .catalog import SpellCatalog
from .models import SpellcastingState, SpellLevels
from .schema_models import Spell, SpellcastingSpec
from .progression import (
    slots_for, highest_slot_level, cantrips_known, preparation_limit, spells_known_cap,
)

class SpellOpResult(BaseModel):
    success: bool
    message: str
    logs: List[str] = Field(default_factory=list)

def _ok(msg: str) -> SpellOpResult:
    return SpellOpResult(success=True, message=msg, logs=[f"[Spell] {msg}"])

def _fail(msg: str) -> SpellOpResult:
    return SpellOpResult(success=False, message=msg, logs=[f"[Spell] {msg}"])

# ---------------------------------------------------------------- domain overlay

def domain_spell_level(unlock_level: int) -> int:
    """Domain tables unlock at character levels 1/3/5/7/9 -> spell levels 1..5."""
    return max(1, (unlock_level + 1) // 2)

def unlocked_domain_spells(domain_table: Dict[int, List[str]], character_level: int) -> Dict[int, List[str]]:
    """Spell level -> domain spell names unlocked at this character level."""
    out: Dict[int, List[str]] = {}
    for unlock in sorted(domain_table):
        if unlock > character_level:
            continue
        bucket = out.setdefault(domain_spell_level(unlock), [])
        for name in domain_table[unlock]:
            if name not in bucket:
                bucket.append(name)
    return out

def apply_overlay(prepared: SpellLevels, domain_table: Dict[int, List[str]], character_level: int) -> SpellLevels:
    """Return a copy of `prepared` with every unlocked domain spell present. Never removes entries."""
    merged: SpellLevels = {lvl: list(names) for lvl, names in prepared.items()}
    for spell_level, names in unlocked_domain_spells(domain_table, character_level).items():
        bucket = merged.setdefault(spell_level, [])
        for name in names:
            if name not in bucket:
                bucket.append(name)
    return merged

# ---------------------------------------------------------------- policies

class CasterPolicy(ABC):
    """
    Archetype strategy: which spells are available, and how prepare/learn are constrained.
    Chosen once per character from its class definition.
    """
    access: str = ""

    def __init__(self, catalog: SpellCatalog, spec: SpellcastingSpec):
        self.catalog = catalog
        self.spec = spec

    # -- limits
    def slots_for_level(self, character_level: int) -> Dict[int, int]:
        return slots_for(self.spec.progression, character_level)

    def max_castable_level(self, character_level: int) -> int:
        return highest_slot_level(self.spec.progression, character_level)

    def cantrip_limit(self, character_level: int) -> int:
        return cantrips_known(self.spec.cantrips_known, character_level)

    def known_limit(self, character_level: int, modifier: int) -> int:
        if self.spec.spells_known is None:
            return 0
        return spells_known_cap(character_level, modifier, self.spec.spells_known)

    def prepared_limit(self, character_level: int, modifier: int) -> int:
        if self.spec.preparation:
            return preparation_limit(character_level, modifier, self.spec.preparation)
        # known casters without a separate preparation step keep all known spells ready
        return self.known_limit(character_level, modifier)

    # -- catalog views
    def list_spells(self, spell_level: int) -> List[Spell]:
        return self.catalog.find_all_at_level(spell_level, self.spec.spell_list)

    @abstractmethod
    def available_to_prepare(self, state: SpellcastingState, spell_level: int) -> List[str]:
        ...

    def available_to_learn(self, state: SpellcastingState, spell_level: int) -> List[Spell]:
        known = set(state.known.get(spell_level, []))
        return [sp for sp in self.list_spells(spell_level) if sp.name not in known]

    def _canonical(self, name: str, spell_level: int) -> str:
        sp = self.catalog.find_by_name(name)
        return sp.name if sp and sp.level == spell_level else name

    # -- preparation
    def prepare(self, state: SpellcastingState, character_level: int, modifier: int,
                spell_level: int, names: List[str]) -> SpellOpResult:
        if not 0 <= spell_level <= 9:
            return _fail(f"Invalid spell level {spell_level}")
        wanted = [self._canonical(n, spell_level) for n in names]
        if len(set(wanted)) != len(wanted):
            return _fail("Duplicate spell names in preparation request")

        domain_here = set(unlocked_domain_spells(state.config.domain_spells, character_level).get(spell_level, []))
        available = set(self.available_to_prepare(state, spell_level))
        missing = [n for n in wanted if n not in available and n not in domain_here]
        if missing:
            return _fail(f"Not available to prepare at level {spell_level}: {', '.join(missing)}")

        if spell_level == 0:
            limit = self.cantrip_limit(character_level)
            if len(wanted) > limit:
                return _fail(f"Cannot prepare {len(wanted)} cantrips (maximum {limit})")
            state.prepared[0] = wanted
            return _ok(f"Prepared {len(wanted)} cantrip(s)")

        new_non_domain = [n for n in wanted if n not in domain_here]
        elsewhere = count_non_domain_prepared(state, character_level, exclude_level=spell_level)
        limit = self.prepared_limit(character_level, modifier)
        if elsewhere + len(new_non_domain) > limit:
            return _fail(
                f"Cannot prepare {len(new_non_domain)} level {spell_level} spell(s): "
                f"limit is {limit} and {elsewhere} already prepared at other levels"
            )

        kept = [n for n in state.prepared.get(spell_level, []) if n in domain_here]
        state.prepared[spell_level] = kept + [n for n in wanted if n not in kept]
        state.prepared = apply_overlay(state.prepared, state.config.domain_spells, character_level)
        return _ok(f"Prepared {len(new_non_domain)} level {spell_level} spell(s)")

    # -- learning
    @abstractmethod
    def learn(self, state: SpellcastingState, character_level: int, modifier: int,
              name: str, spell_level: Optional[int] = None) -> SpellOpResult:
        ...

    def forget(self, state: SpellcastingState, name: str, spell_level: int) -> SpellOpResult:
        canonical = self._canonical(name, spell_level)
        known = state.known.get(spell_level, [])
        if canonical not in known:
            return _fail(f"{name} is not a known level {spell_level} spell")
        known.remove(canonical)
        prepared = state.prepared.get(spell_level, [])
        if canonical in prepared:
            prepared.remove(canonical)
        return _ok(f"Forgot {canonical}")

    def auto_learn(self, state: SpellcastingState, character_level: int,
                   modifier: int) -> Tuple[List[str], List[str], List[str]]:
        """Fill cantrip and spell allowances for the level; returns (cantrips, spells, errors)."""
        return [], [], []

class PreparedFromCatalogPolicy(CasterPolicy):
    """Cleric/druid/paladin: the whole class list is open; nothing is learned."""
    access = "prepared"

    def available_to_prepare(self, state: SpellcastingState, spell_level: int) -> List[str]:
        return [sp.name for sp in self.list_spells(spell_level)]

    def learn(self, state, character_level, modifier, name, spell_level=None) -> SpellOpResult:
        return _fail(f"{state.config.archetype.value.title()} casters prepare from their full list and do not learn spells")

class KnownSpellsPolicy(CasterPolicy):
    """Wizard/sorcerer/bard/warlock/ranger/eldritch knight: only learned spells are usable."""
    access = "known"

    def available_to_prepare(self, state: SpellcastingState, spell_level: int) -> List[str]:
        known = set(state.known.get(spell_level, []))
        return [sp.name for sp in self.list_spells(spell_level) if sp.name in known]

    def learn(self, state, character_level, modifier, name, spell_level=None) -> SpellOpResult:
        sp = self.catalog.find_by_name(name)
        if sp is None:
            return _fail(f"Spell '{name}' not found")
        if self.spec.spell_list not in sp.lists:
            return _fail(f"{sp.name} is not on the {self.spec.spell_list} spell list")
        if spell_level is not None and sp.level != spell_level:
            return _fail(f"{sp.name} is a level {sp.level} spell, not level {spell_level}")
        known = state.known.get(sp.level, [])
        if sp.name in known:
            return _fail(f"{sp.name} is already known")

        if sp.level == 0:
            limit = self.cantrip_limit(character_level)
            if len(known) >= limit:
                return _fail(f"Cannot learn more cantrips (maximum {limit})")
        else:
            top = self.max_castable_level(character_level)
            if sp.level > top:
                return _fail(f"Cannot learn level {sp.level} spells yet (highest castable level is {top})")
            limit = self.known_limit(character_level, modifier)
            total = sum(len(v) for lvl, v in state.known.items() if lvl > 0)
            if total >= limit:
                return _fail(f"Cannot learn more spells (maximum {limit} known)")

        state.known.setdefault(sp.level, []).append(sp.name)
        # cantrips, and spells of casters with no separate preparation, are ready at once
        if sp.level == 0 or not self.spec.preparation:
            prepared = state.prepared.setdefault(sp.level, [])
            if sp.name not in prepared:
                prepared.append(sp.name)
        return _ok(f"Learned {sp.name}")

    def auto_learn(self, state, character_level, modifier):
        cantrips: List[str] = []
        spells: List[str] = []
        errors: List[str] = []

        need = self.cantrip_limit(character_level) - len(state.known.get(0, []))
        if need > 0:
            for sp in self.available_to_learn(state, 0)[:need]:
                res = self.learn(state, character_level, modifier, sp.name, 0)
                if res.success:
                    cantrips.append(sp.name)
                else:
                    errors.append(res.message)
            if len(cantrips) < need:
                errors.append(f"Only {len(cantrips)} of {need} new cantrips could be learned")

        total = sum(len(v) for lvl, v in state.known.items() if lvl > 0)
        need = self.known_limit(character_level, modifier) - total
        if need > 0:
            candidates: List[Spell] = []
            for lvl in range(1, self.max_castable_level(character_level) + 1):
                candidates.extend(self.available_to_learn(state, lvl))
            for sp in candidates[:need]:
                res = self.learn(state, character_level, modifier, sp.name, sp.level)
                if res.success:
                    spells.append(sp.name)
                else:
                    errors.append(f"Failed to learn {sp.name}: {res.message}")
            if len(spells) < need:
                errors.append(f"Only {len(spells)} of {need} new spells could be learned")
        return cantrips, spells, errors

def count_non_domain_prepared(state: SpellcastingState, character_level: int,
                              exclude_level: Optional[int] = None) -> int:
    domain = unlocked_domain_spells(state.config.domain_spells, character_level)
    total = 0
    for lvl in range(1, 10):
        if lvl == exclude_level:
            continue
        skip = set(domain.get(lvl, []))
        total += sum(1 for n in state.prepared.get(lvl, []) if n not in skip)
    return total

def policy_for(catalog: SpellCatalog, spec: SpellcastingSpec) -> CasterPolicy:
    if spec.access == "prepared":
        return PreparedFromCatalogPolicy(catalog, spec)
    return KnownSpellsPolicy(catalog, spec)
