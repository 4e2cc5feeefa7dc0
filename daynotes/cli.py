from __future__ import annotations
from datetime import date, datetime
import asyncio
import logging
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from .days import to_local_date
from .errors import StoreError
from .store import NoteStore

app = typer.Typer(help="daynotes: encrypted journal, one note per day")
console = Console()

DATE_FORMATS = ["%Y-%m-%d"]
MONTH_FORMATS = ["%Y-%m"]


def _run(ctx: typer.Context, op):
    """Run one store coroutine, then close the store. Store errors exit with 1."""
    store: NoteStore = ctx.obj

    async def go():
        try:
            return await op(store)
        finally:
            await store.close()

    try:
        return asyncio.run(go())
    except StoreError as e:
        console.print(f"[red]{type(e).__name__}[/]: {e}")
        raise typer.Exit(1)


@app.callback()
def _boot(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    if ctx.obj is None:
        ctx.obj = NoteStore()


@app.command()
def show(ctx: typer.Context, day: datetime = typer.Argument(..., formats=DATE_FORMATS)):
    d = day.date()
    n = _run(ctx, lambda s: s.get_note_for_date(d))
    if not n:
        console.print(f"[dim]No note for {d.isoformat()}[/]")
        raise typer.Exit(1)
    console.rule(f"{d.isoformat()}  {n.title}")
    console.print(Markdown(n.body or "_<empty>_"))


@app.command()
def write(
    ctx: typer.Context,
    day: datetime = typer.Argument(..., formats=DATE_FORMATS),
    title: str = typer.Option("", "--title", "-t"),
    body: str = typer.Option("", "--body", "-b"),
):
    d = day.date()
    title, body = title.strip(), body.strip()
    n = _run(ctx, lambda s: s.save_note_for_date(d, title, body))
    console.print(f"[green]Saved[/] {d.isoformat()}: {n.title}")


def _notes_table(title: str, notes) -> Table:
    table = Table(title=title)
    table.add_column("Date", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Updated")
    for n in notes:
        table.add_row(
            to_local_date(n.note_date).isoformat(),
            n.title,
            n.updated_at.astimezone().isoformat(timespec="minutes"),
        )
    return table


@app.command()
def month(ctx: typer.Context, which: datetime = typer.Argument(..., formats=MONTH_FORMATS)):
    m = date(which.year, which.month, 1)
    notes = _run(ctx, lambda s: s.get_notes_for_month(m))
    notes = sorted(notes, key=lambda n: n.note_date, reverse=True)
    console.print(_notes_table(f"{m:%B %Y}", notes))


@app.command("list")
def _list(ctx: typer.Context):
    notes = _run(ctx, lambda s: s.get_notes())
    console.print(_notes_table("daynotes", notes))


@app.command()
def wipe(ctx: typer.Context, yes: bool = typer.Option(False, "--yes", "-y", help="skip confirmation")):
    if not yes:
        typer.confirm("Delete every note? This cannot be undone", abort=True)
    count = _run(ctx, lambda s: s.delete_all())
    console.print(f"[red]Deleted[/] {count} notes")


def main():
    app()


if __name__ == "__main__":
    main()
