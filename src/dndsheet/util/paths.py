from __future__ import annotations
from pathlib import Path
from typing import Optional
import sys

def frozen_base_dir() -> Path:
    # PyInstaller --onefile unpacks data to sys._MEIPASS
    if hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS) / "dndsheet"  # type: ignore[attr-defined]
    # dev / installed: src/dndsheet
    return Path(__file__).resolve().parent.parent

def content_dir(override: Optional[str] = None) -> Path:
    if override:
        return Path(override).expanduser()
    return frozen_base_dir() / "content"
