from typing import Optional
import typer
from rich.console import Console
from dndsheet.engine.engine import SheetEngine
from dndsheet.engine.chargen import CharBuildState
from dndsheet.engine.save import delete_save, list_saves
from dndsheet.engine.settings import load_settings, save_settings
from dndsheet.ui.panels import stats_table, slots_table, features_table

app = typer.Typer()
console = Console()

def _load(slot_id: str) -> SheetEngine:
    eng = SheetEngine()
    lines = eng.load_slot(slot_id)
    if eng.character is None:
        for line in lines:
            typer.echo(line)
        raise typer.Exit(code=1)
    return eng

@app.command()
def new(name: str = "Hero", clazz: str = "wizard", level: int = 1,
        domain: Optional[str] = None, slot: Optional[str] = None):
    eng = SheetEngine()
    picks = CharBuildState(name=name, clazz=clazz, level=level, domain=domain)
    try:
        lines = eng.new_character(picks, slot_id=slot)
    except ValueError as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)
    for line in lines:
        typer.echo(line)

@app.command()
def create_character():
    typer.echo("Starting character creation (CLI)...")
    name = typer.prompt("Enter character name", default="Hero")
    clazz = typer.prompt("Enter class (e.g., wizard, cleric, warlock, fighter)", default="wizard")
    level = int(typer.prompt("Enter level", default="1"))
    domain = typer.prompt("Enter domain id (clerics only, blank for none)", default="") or None

    typer.echo("Enter ability scores (STR, DEX, CON, INT, WIS, CHA) separated by spaces:")
    scores_input = typer.prompt("e.g., 8 14 13 15 12 10", default="8 14 13 15 12 10")
    scores_list = [int(s.strip()) for s in scores_input.split()]
    if len(scores_list) != 6:
        typer.echo("Error: expected six ability scores")
        raise typer.Exit(code=1)
    abilities = dict(zip(("str", "dex", "con", "int", "wis", "cha"), scores_list))

    slot = typer.prompt("Save slot", default="slot1")
    eng = SheetEngine()
    try:
        lines = eng.new_character(CharBuildState(name=name, clazz=clazz, level=level,
                                                 domain=domain, abilities=abilities), slot_id=slot)
    except ValueError as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(code=1)
    for line in lines:
        typer.echo(line)
    console.print(stats_table(eng))

@app.command()
def show(slot_id: str):
    eng = _load(slot_id)
    console.print(stats_table(eng))
    if eng.caster:
        console.print(slots_table(eng))
    console.print(features_table(eng))

@app.command()
def run(slot_id: str, command: str):
    """Run one sheet command (e.g. "cast Fireball 3") against a save slot."""
    eng = _load(slot_id)
    for line in eng.execute(command):
        typer.echo(line)

@app.command()
def shell(slot_id: str):
    eng = _load(slot_id)
    typer.echo("Type 'help' for commands, 'quit' to exit.")
    while True:
        cmd = typer.prompt(">", default="", show_default=False)
        if cmd.strip().lower() in ("quit", "exit"):
            break
        for line in eng.execute(cmd):
            typer.echo(line)

@app.command()
def resume():
    """Open a shell on the most recently saved character."""
    eng = SheetEngine()
    lines = eng.continue_latest()
    for line in lines:
        typer.echo(line)
    if eng.character is None or eng.slot_id is None:
        raise typer.Exit(code=1)
    shell(eng.slot_id)

@app.command()
def seed(value: Optional[int] = typer.Argument(None), random_mode: bool = False):
    """Show or change the dice seed stored in settings."""
    s = load_settings()
    if value is not None:
        s.rng_seed, s.rng_seed_mode = value, "fixed"
    elif random_mode:
        s.rng_seed_mode = "random"
    if value is not None or random_mode:
        save_settings(s)
    typer.echo(f"rng_seed_mode={s.rng_seed_mode} rng_seed={s.rng_seed}")

@app.command()
def saves():
    metas = list_saves()
    if not metas:
        typer.echo("No saves found.")
    for m in metas:
        typer.echo(f"{m.slot_id}: {m.character_name} (level {m.level} {m.class_id})")

@app.command()
def delete(slot_id: str):
    if delete_save(slot_id):
        typer.echo(f"Deleted save: {slot_id}")
    else:
        typer.echo(f"No save named {slot_id}")

if __name__ == "__main__":
    app()
