from __future__ import annotations
import random
from typing import List, Optional, Tuple, TYPE_CHECKING
from pydantic import BaseModel, Field

from .dice import roll_die
from .exhaustion import effective_max_hp, remove_exhaustion, MAX_EXHAUSTION
from .expr import eval_int
from .models import Character
from .progression import by_threshold
from .schema_models import ClassDefinition, RestFeatureSpec

if TYPE_CHECKING:
    from .loader import ContentIndex

SPEED_ZERO_LEVEL = 5

class RestResult(BaseModel):
    success: bool
    message: str
    hit_points_restored: int = 0
    hit_dice_spent: int = 0
    hit_dice_restored: int = 0
    spell_slots_restored: List[str] = Field(default_factory=list)
    features_restored: List[str] = Field(default_factory=list)
    exhaustion_reduced: bool = False
    errors: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)

def _refused(kind: str, reason: str) -> RestResult:
    return RestResult(success=False, message=f"Cannot take a {kind} rest: {reason}",
                      errors=[reason], logs=[f"[Rest] {kind} rest refused: {reason}"])

def _spent_levels(ch: Character) -> List[str]:
    ledger = ch.spellcasting.slots
    return [f"Level {lvl}" for lvl, n in ledger.maximum.items() if ledger.current.get(lvl, 0) < n]

def feature_uses_at(spec: RestFeatureSpec, ch: Character) -> int:
    if isinstance(spec.uses, int):
        return spec.uses
    if isinstance(spec.uses, dict):
        return by_threshold(spec.uses, ch.level)
    mod = ch.ability_mod(spec.uses_ability) if spec.uses_ability else 0
    return eval_int(spec.uses, {"level": ch.level, "modifier": mod}, actor=ch)

def sync_class_features(cdef: ClassDefinition, ch: Character) -> List[str]:
    """Grant/resize the class's limited-use features for the character's current level."""
    logs: List[str] = []
    for rf in cdef.rest_features:
        if ch.level < rf.min_level:
            continue
        n = max(1, feature_uses_at(rf, ch))
        had = ch.feature_uses.has(rf.name)
        ch.feature_uses.grant(rf.name, n, rf.recharge_at(ch.level))
        if not had:
            logs.append(f"[Rest] Gained feature {rf.name} ({n} use(s), {rf.recharge_at(ch.level)} rest)")
    return logs

class RestEngine:
    def __init__(self, content: "ContentIndex", character: Character, rng: Optional[random.Random] = None):
        self.content = content
        self.character = character
        self.rng = rng or random.Random()

    def _is_pact_caster(self) -> bool:
        sc = self.character.spellcasting
        return sc is not None and sc.config.progression == "pact"

    # ---------------------------------------------------------------- guards
    def can_take_short_rest(self) -> Tuple[bool, str]:
        lvl = self.character.exhaustion_level
        if lvl >= MAX_EXHAUSTION:
            return False, "Character is dead"
        if lvl >= SPEED_ZERO_LEVEL:
            return False, "Speed reduced to 0 by exhaustion"
        return True, ""

    def can_take_long_rest(self) -> Tuple[bool, str]:
        # exhaustion 5 still allows a long rest
        if self.character.exhaustion_level >= MAX_EXHAUSTION:
            return False, "Character is dead"
        return True, ""

    def available_hit_dice(self) -> int:
        return self.character.hit_dice.current

    # ---------------------------------------------------------------- rests
    def short_rest(self, hit_dice_to_spend: int = 0) -> RestResult:
        ch = self.character
        ok, reason = self.can_take_short_rest()
        if not ok:
            return _refused("short", reason)

        if hit_dice_to_spend < 0:
            return _refused("short", f"Cannot spend a negative number of hit dice ({hit_dice_to_spend})")
        if hit_dice_to_spend > ch.hit_dice.current:
            err = f"Cannot spend {hit_dice_to_spend} hit dice. Only {ch.hit_dice.current} available."
            return RestResult(success=False, message=err, errors=[err], logs=[f"[Rest] {err}"])

        logs: List[str] = [f"[Rest] {ch.name} takes a short rest"]
        con = ch.ability_mod("con")
        cap = effective_max_hp(ch)
        healed = 0
        for _ in range(hit_dice_to_spend):
            roll = roll_die(self.rng, ch.hit_dice.size)
            gain = max(1, roll + con)
            before = ch.hp_current
            ch.hp_current = max(before, min(cap, before + gain))
            healed += ch.hp_current - before
            ch.hit_dice.current -= 1
            logs.append(f"[Rest] Hit die d{ch.hit_dice.size}: {roll}{con:+d} -> +{ch.hp_current - before} HP")

        restored = self._recharge("short")
        slots: List[str] = []
        if self._is_pact_caster() and ch.spellcasting is not None:
            slots = _spent_levels(ch)
            ch.spellcasting.slots.restore_all()
            if slots:
                logs.append(f"[Rest] Pact slots restored: {', '.join(slots)}")
        for name in restored:
            logs.append(f"[Rest] {name} recharged")

        msg = f"Short rest completed. Spent {hit_dice_to_spend} hit dice and restored {healed} hit points."
        return RestResult(success=True, message=msg, hit_points_restored=healed,
                          hit_dice_spent=hit_dice_to_spend, spell_slots_restored=slots,
                          features_restored=restored, logs=logs)

    def long_rest(self) -> RestResult:
        ch = self.character
        ok, reason = self.can_take_long_rest()
        if not ok:
            return _refused("long", reason)

        logs: List[str] = [f"[Rest] {ch.name} takes a long rest"]
        reduced = False
        if ch.exhaustion_level > 0:
            change = remove_exhaustion(ch, 1)
            logs += change.logs
            reduced = True

        target = effective_max_hp(ch)
        healed = max(0, target - ch.hp_current)
        ch.hp_current = max(ch.hp_current, target)

        hd = ch.hit_dice
        regain = max(1, hd.maximum // 2)
        before = hd.current
        hd.current = min(hd.maximum, hd.current + regain)
        dice_restored = hd.current - before

        slots: List[str] = []
        if ch.spellcasting is not None:
            slots = _spent_levels(ch)
            ch.spellcasting.slots.restore_all()
            if slots:
                logs.append(f"[Rest] Spell slots restored: {', '.join(slots)}")

        restored = self._recharge("long")
        for name in restored:
            logs.append(f"[Rest] {name} recharged")

        msg = f"Long rest completed. Restored {healed} hit points and {dice_restored} hit dice."
        return RestResult(success=True, message=msg, hit_points_restored=healed,
                          hit_dice_restored=dice_restored, spell_slots_restored=slots,
                          features_restored=restored, exhaustion_reduced=reduced, logs=logs)

    def _recharge(self, kind: str) -> List[str]:
        uses = self.character.feature_uses
        restored: List[str] = []
        for name in uses.names_recharging_on(kind):  # type: ignore[arg-type]
            if uses.restore_use(name):
                restored.append(name)
        return restored
