from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import json
import time
from typing import List, Optional
from .models import Character

SAVE_ROOT = Path.home() / ".dndsheet" / "saves"

@dataclass
class SaveMeta:
    slot_id: str
    character_name: str
    class_id: str
    level: int
    engine_version: str
    last_saved_ts: float
    rng_seed: Optional[int] = None

def _slot_dir(slot_id: str) -> Path:
    return SAVE_ROOT / slot_id

def ensure_save_root() -> None:
    SAVE_ROOT.mkdir(parents=True, exist_ok=True)

def list_saves() -> List[SaveMeta]:
    ensure_save_root()
    metas: List[SaveMeta] = []
    for slot in SAVE_ROOT.iterdir():
        if not slot.is_dir():
            continue
        meta_path = slot / "meta.json"
        if not meta_path.exists():
            continue
        data = json.loads(meta_path.read_text(encoding="utf-8"))
        metas.append(SaveMeta(
            slot_id=slot.name,
            character_name=data.get("character_name", "?"),
            class_id=data.get("class_id", "?"),
            level=data.get("level", 1),
            engine_version=data.get("engine_version", "0.0"),
            last_saved_ts=data.get("last_saved_ts", 0.0),
            rng_seed=data.get("rng_seed"),
        ))
    metas.sort(key=lambda m: m.last_saved_ts, reverse=True)
    return metas

def latest_save() -> Optional[SaveMeta]:
    saves = list_saves()
    return saves[0] if saves else None

def save_character(slot_id: str, character: Character, engine_version: str,
                   rng_seed: Optional[int] = None) -> None:
    """Persist the whole character record; the record is the only durable state."""
    ensure_save_root()
    sd = _slot_dir(slot_id)
    sd.mkdir(parents=True, exist_ok=True)
    (sd / "save.json").write_text(character.model_dump_json(indent=2), encoding="utf-8")
    meta = {
        "character_name": character.name,
        "class_id": character.clazz,
        "level": character.level,
        "engine_version": engine_version,
        "last_saved_ts": time.time(),
        "rng_seed": rng_seed,
    }
    (sd / "meta.json").write_text(json.dumps(meta, indent=2), encoding="utf-8")

def load_character(slot_id: str) -> Character:
    sd = _slot_dir(slot_id)
    return Character.model_validate_json((sd / "save.json").read_text(encoding="utf-8"))

def delete_save(slot_id: str) -> bool:
    sd = _slot_dir(slot_id)
    if not sd.exists():
        return False
    for p in sd.iterdir():
        if p.is_file():
            p.unlink()
    sd.rmdir()
    return True
