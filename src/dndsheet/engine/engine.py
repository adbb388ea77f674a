import random
import shlex
from pathlib import Path
from typing import List, Optional
from ..util.paths import content_dir
from .expr import expr_cache_info
from .loader import load_content, ContentIndex
from .models import Character
from .chargen import CharBuildState, build_character, hit_points_for
from .save import save_character, load_character, list_saves, latest_save
from .settings import load_settings, Settings
from .dice import roll_dice_str
from .spellcasting import Spellcaster, CastResult, LevelUpResult, new_spellcasting_state
from .policy import SpellOpResult
from .rest import RestEngine, RestResult, sync_class_features
from .exhaustion import (
    ExhaustionChange, add_exhaustion, remove_exhaustion, effective_max_hp, effective_speed,
    exhaustion_info,
)
from .hitpoints import HitPointChange, heal, damage, set_hit_points, add_temp_hp, remove_temp_hp

ENGINE_VERSION = "0.1.0"

HELP_LINES = [
    "Commands:",
    "  status | slots | prepared | features",
    "  cast <spell> [level]          prepare <level> <spell, spell, ...>",
    "  learn <spell>                 forget <level> <spell>",
    "  search <text> [level]         spell <name>",
    "  rest short [hit dice] | rest long",
    "  exhaustion +N | exhaustion -N",
    "  heal N | damage N | hp N      temp +N | temp -N",
    "  use <feature>                 roll <NdS+M>",
    "  levelup <level>               save",
]

class SheetEngine:
    """
    Owns one loaded character and composes the spell and rest engines over it.
    Every mutating call persists the record to the active save slot.
    """

    def __init__(self, content: Optional[ContentIndex] = None, settings: Optional[Settings] = None):
        self.settings: Settings = settings or load_settings()
        self.content_dir: Path = content_dir(self.settings.content_dir)
        self.content: ContentIndex = content or load_content(self.content_dir)
        self.rng_seed = self._get_rng_seed()
        self.rng = random.Random(self.rng_seed)
        self.character: Optional[Character] = None
        self.caster: Optional[Spellcaster] = None
        self.rest: Optional[RestEngine] = None
        self.slot_id: Optional[str] = None

    def _get_rng_seed(self) -> int:
        if self.settings.rng_seed_mode == "random":
            return random.randint(0, 2**32 - 1)
        return self.settings.rng_seed

    # ---------------------------------------------------------------- lifecycle
    def _bind(self, ch: Character) -> None:
        self.character = ch
        self.caster = Spellcaster.for_character(self.content, ch) if ch.spellcasting else None
        self.rest = RestEngine(self.content, ch, self.rng)

    def _require_character(self) -> Character:
        if self.character is None:
            raise RuntimeError("No character loaded")
        return self.character

    def _persist(self) -> None:
        if self.slot_id and self.character is not None:
            save_character(self.slot_id, self.character, ENGINE_VERSION, self.rng_seed)

    def new_character(self, picks: CharBuildState, slot_id: Optional[str] = None) -> list[str]:
        ch, logs = build_character(self.content, picks)
        self._bind(ch)
        self.slot_id = slot_id or self.settings.default_slot
        self._persist()
        return logs + [f"[Save] Saved to slot {self.slot_id}"]

    def continue_latest(self) -> list[str]:
        meta = latest_save()
        if not meta:
            return ["No saves found."]
        return self.load_slot(meta.slot_id)

    def load_slot(self, slot_id: str) -> list[str]:
        try:
            ch = load_character(slot_id)
        except FileNotFoundError:
            return [f"Error: save slot '{slot_id}' not found."]
        except ValueError as e:
            return [f"Error loading save slot '{slot_id}': {e}"]
        if ch.clazz not in self.content.classes:
            return [f"Error: save slot '{slot_id}' uses unknown class '{ch.clazz}'."]
        self._bind(ch)
        self.slot_id = slot_id
        md = next((m for m in list_saves() if m.slot_id == slot_id), None)
        if md and md.rng_seed is not None:
            self.rng_seed = md.rng_seed
            self.rng.seed(md.rng_seed)
        return [f"Loaded save: {slot_id} ({ch.name}, level {ch.level} {ch.clazz})"]

    def save_current(self) -> list[str]:
        if not self.slot_id or self.character is None:
            return ["No active slot/character."]
        self._persist()
        return ["Character saved."]

    # ---------------------------------------------------------------- spells
    def _not_caster(self) -> str:
        ch = self._require_character()
        return f"{ch.name} cannot cast spells"

    def cast_spell(self, name: str, level: Optional[int] = None) -> CastResult:
        if self.caster is None:
            msg = self._not_caster()
            return CastResult(cast=False, message=msg, logs=[f"[Spell] {msg}"])
        res = self.caster.cast_spell(name, level)
        if res.cast:
            self._persist()
        return res

    def prepare_spells(self, level: int, names: List[str]) -> SpellOpResult:
        if self.caster is None:
            msg = self._not_caster()
            return SpellOpResult(success=False, message=msg, logs=[f"[Spell] {msg}"])
        res = self.caster.prepare_spells(level, names)
        if res.success:
            self._persist()
        return res

    def learn_spell(self, name: str, level: Optional[int] = None) -> SpellOpResult:
        if self.caster is None:
            msg = self._not_caster()
            return SpellOpResult(success=False, message=msg, logs=[f"[Spell] {msg}"])
        res = self.caster.learn_spell(name, level)
        if res.success:
            self._persist()
        return res

    def forget_spell(self, name: str, level: int) -> SpellOpResult:
        if self.caster is None:
            msg = self._not_caster()
            return SpellOpResult(success=False, message=msg, logs=[f"[Spell] {msg}"])
        res = self.caster.forget_spell(name, level)
        if res.success:
            self._persist()
        return res

    def get_current_slots(self) -> dict[int, int]:
        return self.caster.get_current_slots() if self.caster else {lvl: 0 for lvl in range(1, 10)}

    def get_max_slots(self) -> dict[int, int]:
        return self.caster.get_max_slots() if self.caster else {lvl: 0 for lvl in range(1, 10)}

    # ---------------------------------------------------------------- rest / exhaustion
    def short_rest(self, hit_dice: int = 0) -> RestResult:
        self._require_character()
        res = self.rest.short_rest(hit_dice)  # type: ignore[union-attr]
        if res.success:
            self._persist()
        return res

    def long_rest(self) -> RestResult:
        self._require_character()
        res = self.rest.long_rest()  # type: ignore[union-attr]
        if res.success:
            self._persist()
        return res

    def add_exhaustion(self, levels: int = 1) -> ExhaustionChange:
        change = add_exhaustion(self._require_character(), levels)
        self._persist()
        return change

    def remove_exhaustion(self, levels: int = 1) -> ExhaustionChange:
        change = remove_exhaustion(self._require_character(), levels)
        self._persist()
        return change

    def heal(self, amount: int) -> HitPointChange:
        change = heal(self._require_character(), amount)
        self._persist()
        return change

    def damage(self, amount: int) -> HitPointChange:
        change = damage(self._require_character(), amount)
        self._persist()
        return change

    def set_hit_points(self, value: int) -> HitPointChange:
        change = set_hit_points(self._require_character(), value)
        self._persist()
        return change

    def add_temp_hp(self, amount: int) -> HitPointChange:
        change = add_temp_hp(self._require_character(), amount)
        self._persist()
        return change

    def remove_temp_hp(self, amount: int) -> HitPointChange:
        change = remove_temp_hp(self._require_character(), amount)
        self._persist()
        return change

    def effective_max_hp(self) -> int:
        return effective_max_hp(self._require_character())

    def effective_speed(self) -> int:
        return effective_speed(self._require_character())

    def use_feature(self, name: str) -> bool:
        ch = self._require_character()
        ok = ch.feature_uses.decrement_use(name)
        if ok:
            self._persist()
        return ok

    # ---------------------------------------------------------------- progression
    def level_up(self, new_level: int) -> list[str]:
        ch = self._require_character()
        if not ch.level < new_level <= 20:
            return [f"Cannot level up from {ch.level} to {new_level}."]
        cdef = self.content.get_class(ch.clazz)
        gained = new_level - ch.level
        ch.level = new_level
        ch.hit_dice.maximum += gained
        ch.hit_dice.current += gained
        new_max = hit_points_for(cdef.hit_die, new_level, ch.ability_mod("con"))
        ch.hp_current += new_max - ch.hp_max
        ch.hp_max = new_max
        logs = [f"[Build] {ch.name} is now level {new_level} ({ch.hp_max} HP)"]
        logs += sync_class_features(cdef, ch)

        sc = cdef.spellcasting
        result: Optional[LevelUpResult] = None
        if self.caster is not None:
            result = self.caster.level_up(new_level)
        elif sc is not None and new_level >= sc.min_level:
            ch.spellcasting = new_spellcasting_state(cdef, new_level)
            self.caster = Spellcaster.for_character(self.content, ch)
            result = self.caster.learn_starting_spells()
            logs.append(f"[Spell] {ch.name} gains spellcasting")
        if result is not None:
            logs += result.logs
        self._persist()
        return logs

    # ---------------------------------------------------------------- text commands
    def status_lines(self) -> list[str]:
        ch = self._require_character()
        info = exhaustion_info(ch.exhaustion_level)
        lines = [
            f"{ch.name}: level {ch.level} {ch.clazz}",
            f"HP {ch.hp_current}/{effective_max_hp(ch)} (temp {ch.hp_temp})  Speed {effective_speed(ch)} ft  "
            f"Hit dice {ch.hit_dice.current}/{ch.hit_dice.maximum} (d{ch.hit_dice.size})",
            f"Exhaustion {ch.exhaustion_level}: {info.name}",
        ]
        for eff in info.effects:
            lines.append(f"  - {eff}")
        if self.caster:
            lines.append(f"Spell save DC {self.caster.save_dc()}  Spell attack {self.caster.attack_bonus():+d}")
        return lines

    def _slot_lines(self) -> list[str]:
        cur, mx = self.get_current_slots(), self.get_max_slots()
        lines = [f"Level {lvl}: {cur[lvl]}/{mx[lvl]}" for lvl in range(1, 10) if mx[lvl] > 0]
        return lines or ["No spell slots."]

    def execute(self, command: str) -> list[str]:
        try:
            parts = shlex.split(command)
        except ValueError as e:
            return [f"Bad command: {e}"]
        if not parts:
            return []
        verb, args = parts[0].lower(), parts[1:]
        if verb in ("help", "?"):
            return list(HELP_LINES)
        if verb == "debug" and args[:1] == ["expr"]:
            return [expr_cache_info()]
        if self.character is None:
            return ["No character loaded."]

        if verb == "status":
            return self.status_lines()
        if verb == "slots":
            return self._slot_lines()
        if verb == "prepared":
            if not self.caster:
                return [self._not_caster()]
            return [f"Level {lvl}: {', '.join(self.caster.prepared(lvl))}"
                    for lvl in range(10) if self.caster.prepared(lvl)] or ["Nothing prepared."]
        if verb == "features":
            uses = self.character.feature_uses.uses
            return [f"{fu.name}: {fu.current}/{fu.maximum} ({fu.recharge} rest)" for fu in uses.values()] or ["No limited-use features."]
        if verb == "cast" and args:
            level = int(args[-1]) if len(args) > 1 and args[-1].isdigit() else None
            name = " ".join(args[:-1] if level is not None else args)
            return [self.cast_spell(name, level).message]
        if verb == "prepare" and len(args) >= 1 and args[0].isdigit():
            names = [n.strip() for n in " ".join(args[1:]).split(",") if n.strip()]
            return [self.prepare_spells(int(args[0]), names).message]
        if verb == "learn" and args:
            return [self.learn_spell(" ".join(args)).message]
        if verb == "forget" and len(args) >= 2 and args[0].isdigit():
            return [self.forget_spell(" ".join(args[1:]), int(args[0])).message]
        if verb == "search" and args:
            if not self.caster:
                return [self._not_caster()]
            level = int(args[-1]) if len(args) > 1 and args[-1].isdigit() else None
            query = " ".join(args[:-1] if level is not None else args)
            hits = self.caster.search(query, level)
            return [f"{sp.name} (level {sp.level} {sp.school})" for sp in hits] or [f"No spells match '{query}'."]
        if verb == "spell" and args:
            sp = self.content.spells.find_by_name(" ".join(args))
            if sp is None:
                return [f"Spell \"{' '.join(args)}\" not found"]
            lines = [f"{sp.name} (Level {sp.level} {sp.school})", sp.description,
                     f"Range: {sp.range}", f"Duration: {sp.duration}", f"Casting Time: {sp.casting_time}"]
            if sp.higher_level:
                lines.append(f"At Higher Levels: {sp.higher_level}")
            return lines
        if verb == "rest" and args:
            if args[0] == "short":
                try:
                    n = int(args[1]) if len(args) > 1 else 0
                except ValueError:
                    return ["Usage: rest short [hit dice] | rest long"]
                res = self.short_rest(n)
            elif args[0] == "long":
                res = self.long_rest()
            else:
                return ["Usage: rest short [hit dice] | rest long"]
            return [res.message] + res.logs[1:]
        if verb == "exhaustion" and args:
            try:
                n = int(args[0])
            except ValueError:
                return ["Usage: exhaustion +N | exhaustion -N"]
            change = self.add_exhaustion(n) if n >= 0 else self.remove_exhaustion(-n)
            return change.logs + [f"  - {e}" for e in change.effects]
        if verb in ("heal", "damage", "hp", "temp") and args:
            try:
                n = int(args[0])
            except ValueError:
                return [f"Usage: {verb} N"]
            if verb == "heal":
                change = self.heal(n)
            elif verb == "damage":
                change = self.damage(n)
            elif verb == "hp":
                change = self.set_hit_points(n)
            else:
                change = self.add_temp_hp(n) if n >= 0 else self.remove_temp_hp(-n)
            return change.logs
        if verb == "use" and args:
            name = " ".join(args)
            if self.use_feature(name):
                return [f"Used {name} ({self.character.feature_uses.remaining(name)} left)"]
            return [f"No uses of {name} remaining"]
        if verb == "roll" and args:
            try:
                return [f"{args[0]} = {roll_dice_str(self.rng, args[0])}"]
            except ValueError as e:
                return [str(e)]
        if verb == "levelup" and args and args[0].isdigit():
            return self.level_up(int(args[0]))
        if verb == "save":
            return self.save_current()
        return [f"Unknown command: {command}. Type 'help'."]
