from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError

if TYPE_CHECKING:
    from src.ledger.config import LedgerConfig
    from src.ledger.remote import HttpRemoteStore
    from src.ledger.storage import HoldingsStorage

app = typer.Typer(help="Silent Ledger CLI")
entry_app = typer.Typer(help="Ledger entries of a holding")
pdf_app = typer.Typer(help="PDF attachments")
app.add_typer(entry_app, name="entry")
app.add_typer(pdf_app, name="pdf")

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.environ.get("LOG_LEVEL", "WARNING")
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    load_dotenv()
    _setup_logging(verbose)


def _fail(message: str, code: int = 1) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=code)


def _validation_message(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def _read_text(path: Path, encoding: str = "utf-8") -> str:
    try:
        return path.read_text(encoding=encoding)
    except UnicodeDecodeError:
        _fail(f"Error reading {path.name}: file is not UTF-8 text")
    except OSError as e:
        _fail(f"Error reading {path.name}: {e.strerror or e}")


@dataclass
class _Ledger:
    cfg: LedgerConfig
    storage: HoldingsStorage
    remote: Optional[HttpRemoteStore]


@contextmanager
def _open_ledger() -> Iterator[_Ledger]:
    from src.ledger.cache import LocalCache
    from src.ledger.config import load_ledger_config
    from src.ledger.remote import HttpRemoteStore
    from src.ledger.storage import HoldingsStorage

    cfg, cfg_path = load_ledger_config()
    logger.debug("Ledger config from %s", cfg_path or "defaults")
    remote = None
    if cfg.remote_enabled:
        remote = HttpRemoteStore(
            cfg.api_base_url,
            timeout_s=cfg.request_timeout_s,
            actor=cfg.actor,
            password=cfg.password,
        )
    storage = HoldingsStorage(LocalCache(Path(cfg.cache_dir)), remote)
    try:
        yield _Ledger(cfg=cfg, storage=storage, remote=remote)
    finally:
        storage.close()
        if remote is not None:
            remote.close()
        st = storage.status
        if st.degraded:
            typer.echo(f"[{st.state}] {st.message}", err=True)


def _echo_card(card, *, with_ledger: bool = False) -> None:
    title = f"{card.symbol}  {card.company_name}".rstrip()
    if card.selected is not None:
        title = ("[x] " if card.selected else "[ ] ") + title
    typer.echo(f"{title}  ({card.id})")
    if card.original_line:
        typer.echo(f"  {card.original_line}")
        typer.echo(f"  Original investment: {card.original_investment}")
    for label, value in card.details:
        typer.echo(f"  {label}: {value}")
    if card.current_shares is not None:
        typer.echo(f"  Current shares: {card.current_shares}   Realized P/L: {card.realized_profit}")
    if card.notes:
        typer.echo(f"  Notes: {card.notes}")
    if with_ledger:
        if not card.ledger:
            typer.echo("  No ledger entries yet.")
        for line in card.ledger:
            text = f"  - {line.date}  {line.entry_type.upper():<8} {line.details}"
            if line.description:
                text += f"  {line.description}"
            typer.echo(f"{text.rstrip()}  ({line.id})")


@app.command("list")
def list_cmd(as_json: bool = typer.Option(False, "--json", help="Print the raw holdings")):
    from src.ledger.controller import LedgerController

    with _open_ledger() as ledger:
        if as_json:
            holdings = ledger.storage.load_all()
            typer.echo(json.dumps([h.to_wire() for h in holdings], indent=2, ensure_ascii=False))
            return
        ctl = LedgerController(ledger.storage, currency_symbol=ledger.cfg.currency_symbol)
        cards = ctl.refresh()
        if not cards:
            typer.echo("No holdings yet. Add one with `add` or `import-csv`.")
        for card in cards:
            _echo_card(card)


@app.command("show")
def show_cmd(holding_id: str = typer.Argument(...)):
    from src.ledger.controller import LedgerController

    with _open_ledger() as ledger:
        ledger.storage.load_all()
        holding = ledger.storage.get_by_id(holding_id)
        if holding is None:
            _fail(f"Holding not found: {holding_id}")
        ctl = LedgerController(ledger.storage, currency_symbol=ledger.cfg.currency_symbol)
        _echo_card(ctl.card_for(holding), with_ledger=True)


def _holding_fields(
    symbol: Optional[str],
    company: Optional[str],
    shares: Optional[str],
    price: Optional[str],
    date: Optional[str],
    notes: Optional[str],
) -> dict[str, object]:
    given = {
        "symbol": symbol,
        "company_name": company,
        "shares_count": shares,
        "purchase_price": price,
        "date_acquired": date,
        "notes": notes,
    }
    return {k: v for k, v in given.items() if v is not None}


@app.command("add")
def add_cmd(
    symbol: str = typer.Option(..., help="Ticker symbol"),
    company: Optional[str] = typer.Option(None, help="Company name"),
    shares: Optional[str] = typer.Option(None, help="Number of shares"),
    price: Optional[str] = typer.Option(None, help="Purchase price per share"),
    date: Optional[str] = typer.Option(None, help="Date acquired (YYYY-MM-DD or MM/DD/YYYY)"),
    notes: Optional[str] = typer.Option(None, help="Free-form notes"),
):
    from src.core.types import HoldingInput

    try:
        inp = HoldingInput.model_validate(_holding_fields(symbol, company, shares, price, date, notes))
    except ValidationError as e:
        _fail(_validation_message(e))
    with _open_ledger() as ledger:
        holding = ledger.storage.add_holding(inp)
        typer.echo(f"Added {holding.symbol} ({holding.id})")


@app.command("update")
def update_cmd(
    holding_id: str = typer.Argument(...),
    symbol: Optional[str] = typer.Option(None),
    company: Optional[str] = typer.Option(None),
    shares: Optional[str] = typer.Option(None, help="Pass an empty string to clear"),
    price: Optional[str] = typer.Option(None, help="Pass an empty string to clear"),
    date: Optional[str] = typer.Option(None),
    notes: Optional[str] = typer.Option(None),
):
    from src.core.types import HoldingInput

    with _open_ledger() as ledger:
        ledger.storage.load_all()
        current = ledger.storage.get_by_id(holding_id)
        if current is None:
            _fail(f"Holding not found: {holding_id}")
        data = HoldingInput.model_validate(current.model_dump()).model_dump()
        data.update(_holding_fields(symbol, company, shares, price, date, notes))
        try:
            inp = HoldingInput.model_validate(data)
        except ValidationError as e:
            _fail(_validation_message(e))
        updated = ledger.storage.update_holding(holding_id, inp)
        if updated is None:
            _fail(f"Holding not found: {holding_id}")
        typer.echo(f"Updated {updated.symbol} ({updated.id})")


@app.command("delete")
def delete_cmd(
    holding_ids: list[str] = typer.Argument(..., help="One or more holding ids"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    if not yes:
        noun = "holding" if len(holding_ids) == 1 else f"{len(holding_ids)} holdings"
        typer.confirm(f"Delete {noun}? This cannot be undone.", abort=True)
    with _open_ledger() as ledger:
        removed = ledger.storage.delete_holdings(holding_ids)
        if not removed:
            _fail("No matching holdings found.")
        typer.echo(f"Deleted {removed} holding(s).")


@app.command("search")
def search_cmd(query: str = typer.Argument(...)):
    from src.ledger.controller import LedgerController

    with _open_ledger() as ledger:
        ctl = LedgerController(ledger.storage, currency_symbol=ledger.cfg.currency_symbol)
        hits = ctl.search(query)
        if not hits:
            typer.echo("No matching holdings.")
        for h in hits:
            typer.echo(f"{h.symbol:<10} {h.company_name}  ({h.id})".rstrip())


@entry_app.command("add")
def entry_add_cmd(
    holding_id: str = typer.Argument(...),
    entry_type: str = typer.Option("note", "--type", help="buy|sell|transfer|note|other"),
    date: Optional[str] = typer.Option(None, help="Defaults to today"),
    shares: Optional[str] = typer.Option(None),
    price: Optional[str] = typer.Option(None, help="Price per share"),
    description: Optional[str] = typer.Option(None),
):
    from src.core.types import LedgerEntryInput

    try:
        inp = LedgerEntryInput.model_validate(
            {
                "entry_type": entry_type,
                "date": date,
                "shares": shares,
                "price_per_share": price,
                "description": description,
            }
        )
    except ValidationError as e:
        _fail(_validation_message(e))
    with _open_ledger() as ledger:
        holding = ledger.storage.add_ledger_entry(holding_id, inp)
        if holding is None:
            _fail(f"Holding not found: {holding_id}")
        typer.echo(f"Added {inp.entry_type} entry to {holding.symbol} ({holding.ledger_entries[0].id})")


@entry_app.command("delete")
def entry_delete_cmd(holding_id: str = typer.Argument(...), entry_id: str = typer.Argument(...)):
    with _open_ledger() as ledger:
        if not ledger.storage.delete_ledger_entry(holding_id, entry_id):
            _fail("Holding or ledger entry not found.")
        typer.echo("Ledger entry deleted.")


@app.command("import-csv")
def import_csv_cmd(
    path: Path = typer.Argument(..., exists=True, dir_okay=False),
    symbol_column: Optional[str] = typer.Option(None, help="Header to use for the symbol"),
    company_column: Optional[str] = typer.Option(None),
    shares_column: Optional[str] = typer.Option(None),
    date_column: Optional[str] = typer.Option(None),
    price_column: Optional[str] = typer.Option(None),
    notes_column: Optional[str] = typer.Option(None),
    dry_run: bool = typer.Option(False, help="Show the mapping and preview without importing"),
):
    from src.importers.csv_import import (
        CsvParseError,
        detect_column_mapping,
        import_holdings_from_csv,
        parse_csv,
        validate_csv_data,
    )
    from src.importers.schemas import MAPPABLE_FIELDS

    text = _read_text(path, encoding="utf-8-sig")
    try:
        parsed = parse_csv(text)
    except CsvParseError as e:
        _fail(f"Error parsing CSV: {e}")

    mapping = detect_column_mapping(parsed.headers)
    overrides = {
        "symbol": symbol_column,
        "company_name": company_column,
        "shares_count": shares_column,
        "date_acquired": date_column,
        "purchase_price": price_column,
        "notes": notes_column,
    }
    for fname, column in overrides.items():
        if column is None:
            continue
        if column and column not in parsed.headers:
            _fail(f"Column {column!r} not found in CSV headers: {', '.join(parsed.headers)}")
        mapping = mapping.model_copy(update={fname: column or None})

    typer.echo(f"Found {parsed.row_count} rows with {len(parsed.headers)} columns.")
    for fname in MAPPABLE_FIELDS:
        typer.echo(f"  {fname:<15} <- {getattr(mapping, fname) or '(skip)'}")
    for row in parsed.rows[:5]:
        typer.echo("  | " + " | ".join(row.get(h, "") for h in parsed.headers))
    if parsed.row_count > 5:
        typer.echo(f"  ... and {parsed.row_count - 5} more rows")

    problems = validate_csv_data(parsed.rows, mapping)
    if problems:
        _fail("Validation errors:\n" + "\n".join(f"  {p}" for p in problems))
    if dry_run:
        typer.echo("Dry run: nothing imported.")
        return

    with _open_ledger() as ledger:
        result = import_holdings_from_csv(ledger.storage, parsed.rows, mapping)
    typer.echo(f"Imported {result.success} of {result.total} rows ({result.errors} errors).")
    for err in result.error_details:
        typer.echo(f"  Row {err.row}: {err.error}")


@app.command("export")
def export_cmd(out: Optional[Path] = typer.Option(None, help="Output file (default: dated backup name)")):
    from src.core.exports import backup_filename
    from src.utils.time import today

    with _open_ledger() as ledger:
        text = ledger.storage.export_json()
    target = out or Path(backup_filename(today()))
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    typer.echo(f"Wrote {target}")


@app.command("import-json")
def import_json_cmd(path: Path = typer.Argument(..., exists=True, dir_okay=False)):
    text = _read_text(path)
    with _open_ledger() as ledger:
        outcome = ledger.storage.import_json(text)
    if not outcome.success:
        _fail(outcome.message)
    typer.echo(outcome.message)


@app.command("sync")
def sync_cmd():
    from src.ledger.remote import RemoteError

    with _open_ledger() as ledger:
        try:
            synced = ledger.storage.push_to_cloud()
        except RemoteError as e:
            _fail(f"Sync failed: {e}")
    typer.echo(f"Synced {synced} holdings to cloud.")


@app.command("pull")
def pull_cmd():
    from src.ledger.remote import RemoteError

    with _open_ledger() as ledger:
        try:
            holdings = ledger.storage.pull_from_cloud()
        except RemoteError as e:
            _fail(f"Pull failed: {e}")
    if not holdings:
        typer.echo("No data in cloud to pull.")
        return
    typer.echo(f"Pulled {len(holdings)} holdings from cloud.")


@app.command("status")
def status_cmd():
    from src.ledger.remote import RemoteError

    with _open_ledger() as ledger:
        local = ledger.storage.load_local()
        typer.echo(f"Local cache: {ledger.cfg.cache_dir} ({len(local)} holdings)")
        if ledger.remote is None:
            typer.echo("Cloud: disabled")
            return
        try:
            st = ledger.remote.status()
        except RemoteError as e:
            _fail(f"Cloud: unreachable at {ledger.cfg.api_base_url} ({e})")
        typer.echo(
            f"Cloud: connected at {ledger.cfg.api_base_url} "
            f"({st.holdings_count} holdings, {st.entries_count} ledger entries)"
        )


@pdf_app.command("add")
def pdf_add_cmd(paths: list[Path] = typer.Argument(..., exists=True, dir_okay=False)):
    from src.ledger.pdfs import PdfLibrary

    with _open_ledger() as ledger:
        library = PdfLibrary(ledger.storage.cache, ledger.remote)
        for p in paths:
            pdf = library.add(p.name, p.read_bytes())
            if pdf is None:
                typer.echo(f"Skipped {p.name}: not a PDF", err=True)
                continue
            typer.echo(f"Added {pdf.name} ({pdf.size}) ({pdf.id})")


@pdf_app.command("list")
def pdf_list_cmd():
    from src.ledger.pdfs import PdfLibrary
    from src.utils.time import format_local

    with _open_ledger() as ledger:
        items = PdfLibrary(ledger.storage.cache, ledger.remote).load()
    if not items:
        typer.echo("No PDFs uploaded.")
    for pdf in items:
        uploaded = format_local(pdf.uploaded_at) if pdf.uploaded_at else ""
        typer.echo(f"{pdf.name}  {pdf.size}  {uploaded}  ({pdf.id})")


@pdf_app.command("delete")
def pdf_delete_cmd(pdf_id: str = typer.Argument(...)):
    from src.ledger.pdfs import PdfLibrary

    with _open_ledger() as ledger:
        library = PdfLibrary(ledger.storage.cache, ledger.remote)
        library.load()
        if not library.delete(pdf_id):
            _fail(f"PDF not found: {pdf_id}")
    typer.echo("PDF deleted.")


@pdf_app.command("extract")
def pdf_extract_cmd(
    pdf_id: str = typer.Argument(...),
    out: Optional[Path] = typer.Option(None, help="Output file (default: the PDF's name)"),
):
    from src.ledger.pdfs import PdfLibrary

    with _open_ledger() as ledger:
        library = PdfLibrary(ledger.storage.cache, ledger.remote)
        library.load()
        pdf = library.get(pdf_id)
        if pdf is None:
            _fail(f"PDF not found: {pdf_id}")
        try:
            content = library.extract(pdf_id)
        except ValueError as e:
            _fail(str(e))
    target = out or Path(Path(pdf.name).name)
    target.write_bytes(content or b"")
    typer.echo(f"Wrote {target}")


@app.command("serve")
def serve_cmd(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(8000),
    reload: bool = typer.Option(False),
):
    import uvicorn

    uvicorn.run("src.app.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
