from __future__ import annotations
from typing import Dict, List, Optional, Iterable
from .schema_models import Spell

class SpellCatalog:
    """Read-only lookup over every loaded spell; shared across characters."""

    def __init__(self, spells: Iterable[Spell] = ()):
        self._by_id: Dict[str, Spell] = {}
        self._by_name: Dict[str, Spell] = {}
        for sp in spells:
            self.add(sp)

    def add(self, spell: Spell) -> None:
        if spell.id in self._by_id:
            raise RuntimeError(f"Duplicate spell id {spell.id}")
        key = spell.name.lower()
        if key in self._by_name:
            raise RuntimeError(f"Duplicate spell name {spell.name}")
        self._by_id[spell.id] = spell
        self._by_name[key] = spell

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, spell_id: str) -> bool:
        return spell_id in self._by_id

    def get(self, spell_id: str) -> Spell:
        return self._by_id[spell_id]

    def find_by_name(self, name: str) -> Optional[Spell]:
        return self._by_name.get(name.strip().lower())

    def find_all_at_level(self, level: int, spell_list: Optional[str] = None) -> List[Spell]:
        return [
            sp for sp in self._by_id.values()
            if sp.level == level and (spell_list is None or spell_list in sp.lists)
        ]

    def search(self, query: str, level: Optional[int] = None, spell_list: Optional[str] = None) -> List[Spell]:
        q = query.lower()
        out: List[Spell] = []
        for sp in self._by_id.values():
            if level is not None and sp.level != level:
                continue
            if spell_list is not None and spell_list not in sp.lists:
                continue
            if q in sp.name.lower() or q in sp.school.lower() or q in sp.description.lower():
                out.append(sp)
        return out
