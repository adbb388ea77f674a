from __future__ import annotations
from pathlib import Path
import json
import re
from typing import List, Any
import yaml
import typer
from py_expression_eval import Parser
from pydantic import ValidationError
from dndsheet.engine.loader import SpellAdapter, ClassAdapter, DomainAdapter
from dndsheet.engine.expr import FORMULA_VARIABLES


# Expression validation config
ALLOWED_FUNCTIONS = {"min", "max", "floor", "ceil", "ability_mod"}
ALLOWED_SYMBOLS = set(FORMULA_VARIABLES) | {"str", "dex", "con", "int", "wis", "cha"}

# Keys that we treat as expressions when their value is a string
EXPR_KEYS = {"spells_known", "preparation", "uses"}

_parser = Parser()

def _expr_functions(expr: str) -> set[str]:
    return set(re.findall(r"\b([A-Za-z_][A-Za-z0-9_]*)\s*\(", expr))

def _expr_symbols(expr: str, used_funcs: set[str]) -> set[str]:
    # identifiers outside quoted strings, minus function names
    bare = re.sub(r"\"[^\"]*\"|'[^']*'", "", expr)
    syms = set(re.findall(r"\b([A-Za-z_][A-Za-z0-9_]*)\b", bare))
    return {s for s in syms if s not in used_funcs}

def prevalidate_expr(expr: str, *, file_path: str, field_path: str) -> list[str]:
    errors: list[str] = []
    try:
        _parser.parse(expr)
    except Exception as e:
        errors.append(f"{file_path}:{field_path}: invalid expression syntax: {e}")
        return errors

    funcs = _expr_functions(expr)
    unknown_funcs = funcs - ALLOWED_FUNCTIONS
    if unknown_funcs:
        errors.append(f"{file_path}:{field_path}: unknown function(s): {sorted(unknown_funcs)}; allowed: {sorted(ALLOWED_FUNCTIONS)}")
    unknown_syms = _expr_symbols(expr, funcs) - ALLOWED_SYMBOLS
    if unknown_syms:
        errors.append(f"{file_path}:{field_path}: unknown variable(s): {sorted(unknown_syms)}; allowed: {sorted(FORMULA_VARIABLES)}")
    return errors

def _walk_exprs(data: object, *, file_path: str, prefix: str) -> list[str]:
    """
    Recursively walk a dict/list tree; for any key in EXPR_KEYS whose value is a str,
    parse and prevalidate the expression.
    """
    errs: list[str] = []
    if isinstance(data, dict):
        for k, v in data.items():
            path = f"{prefix}.{k}" if prefix else str(k)
            if isinstance(v, str) and k in EXPR_KEYS:
                errs.extend(prevalidate_expr(v, file_path=file_path, field_path=path))
            if isinstance(v, (dict, list)):
                errs.extend(_walk_exprs(v, file_path=file_path, prefix=path))
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            errs.extend(_walk_exprs(item, file_path=file_path, prefix=f"{prefix}[{idx}]"))
    return errs

def _load(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text) or {}
    return json.loads(text)

def _iter(root: Path, exts=(".json", ".yaml", ".yml")):
    if not root.exists():
        return
    for p in sorted(root.rglob("*")):
        if p.is_file() and p.suffix.lower() in exts:
            yield p

def _records(data: Any) -> list:
    if isinstance(data, list):
        return data
    return [data] if data else []

def validate_tree(content_dir: Path) -> List[str]:
    """Schema-, expression- and cross-reference-check a content directory. Returns error lines."""
    errors: List[str] = []
    groups = [("spells", SpellAdapter), ("classes", ClassAdapter), ("domains", DomainAdapter)]
    parsed: dict[str, list] = {k: [] for k, _ in groups}

    # 1) Per-record schema + expr validation
    for sub, adapter in groups:
        for fp in _iter(content_dir / sub):
            for idx, raw in enumerate(_records(_load(fp))):
                try:
                    parsed[sub].append((fp, adapter.validate_python(raw)))
                except ValidationError as e:
                    errors.append(f"{fp}[{idx}]: {e}")
                    continue
                errors.extend(_walk_exprs(raw, file_path=str(fp), prefix=f"{sub}[{idx}]"))

    # 2) Duplicate ids / names
    for sub in ("spells", "classes", "domains"):
        seen: dict[str, Path] = {}
        for fp, obj in parsed[sub]:
            if obj.id in seen:
                errors.append(f"Duplicate {sub} id '{obj.id}' in {fp} (first in {seen[obj.id]})")
            seen[obj.id] = fp
    spell_names: dict[str, int] = {}
    for fp, sp in parsed["spells"]:
        key = sp.name.lower()
        if key in spell_names:
            errors.append(f"Duplicate spell name '{sp.name}' in {fp}")
        spell_names[key] = sp.level

    # 3) Cross references
    class_ids = {c.id for _, c in parsed["classes"]}
    lists_in_use = {lst for _, sp in parsed["spells"] for lst in sp.lists}
    for fp, cdef in parsed["classes"]:
        sc = cdef.spellcasting
        if sc and sc.spell_list not in lists_in_use:
            errors.append(f"{fp}: class '{cdef.id}' uses spell list '{sc.spell_list}' with no spells")
    for fp, dom in parsed["domains"]:
        if dom.class_id not in class_ids:
            errors.append(f"{fp}: domain '{dom.id}' references unknown class '{dom.class_id}'")
        for unlock, names in dom.spells.items():
            for name in names:
                if name.lower() not in spell_names:
                    errors.append(f"{fp}: domain '{dom.id}' references unknown spell '{name}'")
                elif spell_names[name.lower()] != (unlock + 1) // 2:
                    errors.append(f"{fp}: domain '{dom.id}' spell '{name}' unlocked at level {unlock} "
                                  f"is not a level {(unlock + 1) // 2} spell")
    return errors

app = typer.Typer(add_completion=False)

@app.command("validate-content")
def validate_content(content_dir: Path = typer.Argument(Path("src/dndsheet/content"))):
    errors = validate_tree(content_dir)
    for msg in errors:
        typer.echo(f"[ERROR] {msg}", err=True)
    if errors:
        raise typer.Exit(code=1)
    typer.echo("Content validated successfully.")

@app.command("check-expr")
def check_expr(expr: str):
    """Pre-parse one formula the way content formulas are checked."""
    errs = prevalidate_expr(expr, file_path="<arg>", field_path="expr")
    for msg in errs:
        typer.echo(f"[ERROR] {msg}", err=True)
    if errs:
        raise typer.Exit(code=1)
    typer.echo("OK")

if __name__ == "__main__":
    app()
