from __future__ import annotations
from typing import Any, Optional, Dict, TYPE_CHECKING
from functools import lru_cache
import threading
import math

from py_expression_eval import Parser

if TYPE_CHECKING:
    from .models import Character

# Thread-local evaluation context so ability_mod() can read the character dynamically
class _EvalTLS(threading.local):
    def __init__(self):
        self.actor: Optional["Character"] = None

_TLS = _EvalTLS()

_parser = Parser()

_parser.functions["min"] = min
_parser.functions["max"] = max
_parser.functions["floor"] = math.floor
_parser.functions["ceil"] = math.ceil

def _ability_name(name: Any) -> str:
    s = str(name).lower()
    aliases = {"strength": "str", "dexterity": "dex", "constitution": "con",
               "intelligence": "int", "wisdom": "wis", "charisma": "cha"}
    return aliases.get(s, s)

def _ability_mod(name: Any) -> int:
    ent = _TLS.actor
    if ent is None:
        return 0
    return ent.abilities.get(_ability_name(name)).mod()

_parser.functions["ability_mod"] = _ability_mod

# Names a formula may reference as plain variables
FORMULA_VARIABLES = ("level", "modifier")

@lru_cache(maxsize=1024)
def _compile_expr(expr: str):
    return _parser.parse(expr)

def eval_expr(expr: str | int | float,
              variables: Optional[Dict[str, Any]] = None,
              actor: Optional["Character"] = None) -> int | float:
    """
    Evaluate a content formula such as "max(1, level + modifier)".
    Variables are passed explicitly; ability_mod("cha") reads the optional actor.
    """
    if isinstance(expr, (int, float)):
        return expr
    prev = _TLS.actor
    _TLS.actor = actor
    try:
        value = _compile_expr(expr).evaluate(dict(variables or {}))
    finally:
        _TLS.actor = prev

    f = float(value)
    return int(f) if f.is_integer() else f

def eval_int(expr: str | int | float, variables: Optional[Dict[str, Any]] = None,
             actor: Optional["Character"] = None) -> int:
    return int(math.floor(eval_expr(expr, variables, actor)))

def expr_cache_info() -> str:
    info = _compile_expr.cache_info()
    return f"expr-cache: hits={info.hits}, misses={info.misses}, size={info.currsize}/{info.maxsize}"
