from __future__ import annotations
from typing import Dict
from pydantic import BaseModel, Field, model_validator

SPELL_LEVELS = range(1, 10)

def _empty_levels() -> Dict[int, int]:
    return {lvl: 0 for lvl in SPELL_LEVELS}

class SlotLedger(BaseModel):
    """
    Current vs. maximum spell slots for spell levels 1-9.
    Level 0 (cantrips) never consumes a slot.
    """
    current: Dict[int, int] = Field(default_factory=_empty_levels)
    maximum: Dict[int, int] = Field(default_factory=_empty_levels)

    @model_validator(mode="after")
    def _normalize(self):
        errs: list[str] = []
        for k in list(self.current) + list(self.maximum):
            if k not in SPELL_LEVELS:
                errs.append(f"slot level {k} outside 1..9")
        if errs:
            raise ValueError("; ".join(errs))
        for lvl in SPELL_LEVELS:
            mx = max(0, int(self.maximum.get(lvl, 0)))
            self.maximum[lvl] = mx
            self.current[lvl] = min(max(0, int(self.current.get(lvl, mx))), mx)
        return self

    @classmethod
    def full(cls, maximum: Dict[int, int]) -> "SlotLedger":
        mx = {lvl: int(maximum.get(lvl, 0)) for lvl in SPELL_LEVELS}
        return cls(current=dict(mx), maximum=mx)

    def available(self, level: int) -> int:
        return self.current.get(level, 0)

    def max_for(self, level: int) -> int:
        return self.maximum.get(level, 0)

    def highest_level(self) -> int:
        return max((lvl for lvl in SPELL_LEVELS if self.maximum[lvl] > 0), default=0)

    def consume(self, level: int) -> bool:
        if level == 0:
            return True
        if self.current.get(level, 0) > 0:
            self.current[level] -= 1
            return True
        return False

    def restore_one(self, level: int) -> None:
        if level in self.maximum and self.current[level] < self.maximum[level]:
            self.current[level] += 1

    def restore_all(self) -> None:
        for lvl in SPELL_LEVELS:
            self.current[lvl] = self.maximum[lvl]

    def set_maximum(self, maximum: Dict[int, int]) -> None:
        # Raising a maximum never grants slots; lowering it clamps current down.
        for lvl in SPELL_LEVELS:
            mx = max(0, int(maximum.get(lvl, 0)))
            self.maximum[lvl] = mx
            self.current[lvl] = min(self.current[lvl], mx)

    def is_full(self) -> bool:
        return all(self.current[lvl] == self.maximum[lvl] for lvl in SPELL_LEVELS)
