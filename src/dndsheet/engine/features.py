from __future__ import annotations
from typing import Dict, Literal, List
from pydantic import BaseModel, Field

Recharge = Literal["short", "long"]

class FeatureUse(BaseModel):
    name: str
    current: int = 1
    maximum: int = 1
    recharge: Recharge = "long"

class FeatureUses(BaseModel):
    """Per-character registry of limited-use class features (Second Wind, Rage, ...)."""
    uses: Dict[str, FeatureUse] = Field(default_factory=dict)

    def grant(self, name: str, maximum: int, recharge: Recharge = "long") -> FeatureUse:
        existing = self.uses.get(name)
        if existing:
            existing.maximum = max(0, maximum)
            existing.current = min(existing.current, existing.maximum)
            existing.recharge = recharge
            return existing
        fu = FeatureUse(name=name, current=max(0, maximum), maximum=max(0, maximum), recharge=recharge)
        self.uses[name] = fu
        return fu

    def has(self, name: str) -> bool:
        return name in self.uses

    def remaining(self, name: str) -> int:
        fu = self.uses.get(name)
        return fu.current if fu else 0

    def decrement_use(self, name: str) -> bool:
        fu = self.uses.get(name)
        if not fu or fu.current <= 0:
            return False
        fu.current -= 1
        return True

    def restore_use(self, name: str) -> bool:
        """Refill one feature to its maximum. False if the character lacks it."""
        fu = self.uses.get(name)
        if not fu:
            return False
        fu.current = fu.maximum
        return True

    def names_recharging_on(self, rest: Recharge) -> List[str]:
        if rest == "long":
            return list(self.uses)
        return [n for n, fu in self.uses.items() if fu.recharge == "short"]
