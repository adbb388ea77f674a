from __future__ import annotations
import math
from typing import Dict, Literal, Optional, Union

from .expr import eval_int
from .slots import SPELL_LEVELS

Progression = Literal["full", "half", "third", "pact"]

MAX_CHARACTER_LEVEL = 20
DEFAULT_PREPARATION_FORMULA = "max(1, level + modifier)"

# Slots per spell level (index 0 = 1st level) for a full caster
FULL_CASTER_SLOTS: Dict[int, tuple[int, ...]] = {
    1: (2,),
    2: (3,),
    3: (4, 2),
    4: (4, 3),
    5: (4, 3, 2),
    6: (4, 3, 3),
    7: (4, 3, 3, 1),
    8: (4, 3, 3, 2),
    9: (4, 3, 3, 3, 1),
    10: (4, 3, 3, 3, 2),
    11: (4, 3, 3, 3, 2, 1),
    12: (4, 3, 3, 3, 2, 1),
    13: (4, 3, 3, 3, 2, 1, 1),
    14: (4, 3, 3, 3, 2, 1, 1),
    15: (4, 3, 3, 3, 2, 1, 1, 1),
    16: (4, 3, 3, 3, 2, 1, 1, 1),
    17: (4, 3, 3, 3, 2, 1, 1, 1, 1),
    18: (4, 3, 3, 3, 3, 1, 1, 1, 1),
    19: (4, 3, 3, 3, 3, 2, 1, 1, 1),
    20: (4, 3, 3, 3, 3, 2, 2, 1, 1),
}

def _clamp_level(level: int) -> int:
    return min(int(level), MAX_CHARACTER_LEVEL)

def _as_ledger(row: tuple[int, ...]) -> Dict[int, int]:
    out = {lvl: 0 for lvl in SPELL_LEVELS}
    for i, n in enumerate(row, start=1):
        out[i] = n
    return out

def _full(level: int) -> Dict[int, int]:
    return _as_ledger(FULL_CASTER_SLOTS[level])

def _half(level: int) -> Dict[int, int]:
    if level < 2:
        return _as_ledger(())
    return _full(math.ceil(level / 2))

def _third(level: int) -> Dict[int, int]:
    out = _full(level)
    for lvl in SPELL_LEVELS:
        if lvl % 2 == 1:
            out[lvl] = max(0, out[lvl] - 1)
    return out

def _pact(level: int) -> Dict[int, int]:
    out = _as_ledger(())
    if level == 1:
        out[1] = 1
        return out
    # slot level rises every two character levels, capped at 5th
    slot_level = min(5, (level + 1) // 2)
    out[slot_level] = 2
    return out

_CURVES = {
    "full": _full,
    "half": _half,
    "third": _third,
    "pact": _pact,
}

def slots_for(progression: Progression, level: int) -> Dict[int, int]:
    """Maximum slots per spell level (1-9) for a progression at a character level."""
    if progression not in _CURVES:
        raise ValueError(f"Unknown progression '{progression}'")
    if level <= 0:
        return _as_ledger(())
    return _CURVES[progression](_clamp_level(level))

def highest_slot_level(progression: Progression, level: int) -> int:
    slots = slots_for(progression, level)
    return max((lvl for lvl, n in slots.items() if n > 0), default=0)

def by_threshold(table: Dict[int, int], level: int, default: int = 0) -> int:
    """Value of the highest threshold <= level, e.g. {1: 3, 4: 4, 10: 5}."""
    value = default
    for threshold in sorted(table):
        if level >= threshold:
            value = table[threshold]
    return value

def cantrips_known(table: Dict[int, int], level: int) -> int:
    return by_threshold(table, level)

def proficiency_bonus(level: int) -> int:
    return math.ceil(max(1, level) / 4) + 1

def preparation_limit(level: int, modifier: int, formula: Optional[str] = None) -> int:
    return max(1, eval_int(formula or DEFAULT_PREPARATION_FORMULA, {"level": level, "modifier": modifier}))

def spells_known_cap(level: int, modifier: int, formula: Union[str, int, Dict[int, int]]) -> int:
    if isinstance(formula, dict):
        return by_threshold(formula, level)
    return max(0, eval_int(formula, {"level": level, "modifier": modifier}))
