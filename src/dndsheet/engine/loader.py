from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, Tuple, List, Any
import json
import yaml
from pydantic import TypeAdapter
from .catalog import SpellCatalog
from .schema_models import Spell, ClassDefinition, DomainDefinition

SpellAdapter = TypeAdapter(Spell)
ClassAdapter = TypeAdapter(ClassDefinition)
DomainAdapter = TypeAdapter(DomainDefinition)

def _load_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in [".yaml", ".yml"]:
        return yaml.safe_load(text) or {}
    return json.loads(text)

def _records(data: Any) -> List[dict]:
    # A file holds either one record or a list of them
    if isinstance(data, list):
        return data
    return [data] if data else []

def _iter_files(root: Path, exts: Tuple[str,...]=(".json",".yaml",".yml")) -> Iterable[Path]:
    if not root.exists():
        return []
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in exts)

@dataclass
class ContentIndex:
    spells: SpellCatalog = field(default_factory=SpellCatalog)
    classes: Dict[str, ClassDefinition] = field(default_factory=dict)
    domains: Dict[str, DomainDefinition] = field(default_factory=dict)

    def get_class(self, cid: str) -> ClassDefinition:
        return self.classes[cid]

    def get_domain(self, did: str) -> DomainDefinition:
        return self.domains[did]

def load_content(base_dir: Path) -> ContentIndex:
    spells = SpellCatalog()
    for fp in _iter_files(base_dir / "spells"):
        for data in _records(_load_file(fp)):
            sp = SpellAdapter.validate_python(data)
            try:
                spells.add(sp)
            except RuntimeError as e:
                raise RuntimeError(f"{e} in {fp}") from e

    classes: Dict[str, ClassDefinition] = {}
    for fp in _iter_files(base_dir / "classes"):
        for data in _records(_load_file(fp)):
            cd = ClassAdapter.validate_python(data)
            if cd.id in classes:
                raise RuntimeError(f"Duplicate class id {cd.id} in {fp}")
            classes[cd.id] = cd

    domains: Dict[str, DomainDefinition] = {}
    for fp in _iter_files(base_dir / "domains"):
        for data in _records(_load_file(fp)):
            dd = DomainAdapter.validate_python(data)
            if dd.id in domains:
                raise RuntimeError(f"Duplicate domain id {dd.id} in {fp}")
            domains[dd.id] = dd

    return ContentIndex(spells=spells, classes=classes, domains=domains)
