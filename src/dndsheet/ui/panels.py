from rich.table import Table
from ..engine.engine import SheetEngine
from ..engine.exhaustion import effective_max_hp, effective_speed, exhaustion_info

def stats_table(engine: SheetEngine) -> Table:
    ch = engine.character
    table = Table(title="Character", pad_edge=False, show_header=False)
    if ch is None:
        table.add_row("", "No character loaded")
        return table
    table.add_row("Name", f"{ch.name} (level {ch.level} {ch.clazz})")
    table.add_row("HP", f"{ch.hp_current}/{effective_max_hp(ch)}" + (" (halved)" if effective_max_hp(ch) < ch.hp_max else ""))
    if ch.hp_temp:
        table.add_row("Temp HP", str(ch.hp_temp))
    table.add_row("Speed", f"{effective_speed(ch)} ft")
    table.add_row("Hit dice", f"{ch.hit_dice.current}/{ch.hit_dice.maximum} d{ch.hit_dice.size}")
    table.add_row("Exhaustion", f"{ch.exhaustion_level} - {exhaustion_info(ch.exhaustion_level).name}")
    if engine.caster:
        table.add_row("Spell DC", str(engine.caster.save_dc()))
        table.add_row("Spell attack", f"{engine.caster.attack_bonus():+d}")
    return table

def slots_table(engine: SheetEngine) -> Table:
    table = Table(title="Spell slots", pad_edge=False)
    table.add_column("Level", justify="right")
    table.add_column("Current", justify="right")
    table.add_column("Max", justify="right")
    cur, mx = engine.get_current_slots(), engine.get_max_slots()
    for lvl in range(1, 10):
        if mx[lvl]:
            table.add_row(str(lvl), str(cur[lvl]), str(mx[lvl]))
    return table

def features_table(engine: SheetEngine) -> Table:
    table = Table(title="Features", pad_edge=False)
    table.add_column("Feature")
    table.add_column("Uses", justify="right")
    table.add_column("Recharge")
    if engine.character:
        for fu in engine.character.feature_uses.uses.values():
            table.add_row(fu.name, f"{fu.current}/{fu.maximum}", fu.recharge)
    return table
