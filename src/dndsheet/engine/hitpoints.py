from __future__ import annotations
from typing import List
from pydantic import BaseModel, Field

from .exhaustion import effective_max_hp
from .models import Character

class HitPointChange(BaseModel):
    previous: int
    current: int
    temp: int = 0
    # amount actually healed, dealt, added or removed
    amount: int = 0
    logs: List[str] = Field(default_factory=list)

def _change(ch: Character, previous: int, amount: int, log: str) -> HitPointChange:
    logs = [f"[HP] {ch.name}: {log} ({ch.hp_current}/{effective_max_hp(ch)}, temp {ch.hp_temp})"]
    return HitPointChange(previous=previous, current=ch.hp_current, temp=ch.hp_temp,
                          amount=amount, logs=logs)

def heal(ch: Character, amount: int) -> HitPointChange:
    """Regain hit points up to the exhaustion-limited maximum; never lowers current HP."""
    prev = ch.hp_current
    cap = effective_max_hp(ch)
    ch.hp_current = max(prev, min(cap, prev + max(0, amount)))
    return _change(ch, prev, ch.hp_current - prev, f"healed {ch.hp_current - prev}")

def damage(ch: Character, amount: int) -> HitPointChange:
    """Temporary hit points absorb damage first; current HP stops at 0."""
    prev = ch.hp_current
    amount = max(0, amount)
    absorbed = min(ch.hp_temp, amount)
    ch.hp_temp -= absorbed
    ch.hp_current = max(0, prev - (amount - absorbed))
    note = f"took {amount} damage" + (f", {absorbed} absorbed by temp HP" if absorbed else "")
    change = _change(ch, prev, amount, note)
    if ch.hp_current == 0 and amount - absorbed > 0:
        change.logs.append(f"[HP] {ch.name} is unconscious")
    return change

def set_hit_points(ch: Character, value: int) -> HitPointChange:
    prev = ch.hp_current
    ch.hp_current = max(0, min(effective_max_hp(ch), value))
    return _change(ch, prev, ch.hp_current - prev, f"hit points set to {ch.hp_current}")

def add_temp_hp(ch: Character, amount: int) -> HitPointChange:
    # temporary hit points do not stack; the higher value wins
    prev_temp = ch.hp_temp
    ch.hp_temp = max(prev_temp, max(0, amount))
    return _change(ch, ch.hp_current, ch.hp_temp - prev_temp, f"temp HP {prev_temp} -> {ch.hp_temp}")

def remove_temp_hp(ch: Character, amount: int) -> HitPointChange:
    prev_temp = ch.hp_temp
    ch.hp_temp = max(0, prev_temp - max(0, amount))
    return _change(ch, ch.hp_current, prev_temp - ch.hp_temp, f"temp HP {prev_temp} -> {ch.hp_temp}")
