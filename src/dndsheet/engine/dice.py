from __future__ import annotations
import random
import re

def roll_die(rng: random.Random, sides: int) -> int:
    return rng.randint(1, sides)

def roll_dice(rng: random.Random, n: int, sides: int) -> list[int]:
    return [roll_die(rng, sides) for _ in range(max(0, n))]

def roll_dice_str(rng: random.Random, s: str) -> int:  # e.g., "2d6+3"
    m = re.fullmatch(r"\s*(\d+)d(\d+)([+-]\d+)?\s*", s)
    if not m:
        raise ValueError(f"Bad dice expression: {s!r}")
    n, d = int(m.group(1)), int(m.group(2))
    bonus = int(m.group(3) or 0)
    return sum(roll_dice(rng, n, d)) + bonus
