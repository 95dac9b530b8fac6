"""CLI entry point for the business card scanner."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from card_scanner.batch import BatchProcessor
from card_scanner.cache import MemoryOCRCache
from card_scanner.config import Settings, get_settings
from card_scanner.errors import CardScannerError
from card_scanner.extractor import CardParser, LocalCardParser, OllamaCardParser
from card_scanner.models.business_card import BusinessCard
from card_scanner.models.options import OCROptions
from card_scanner.parser import BusinessCardParser
from card_scanner.repository import OCRRepository
from card_scanner.storage import JsonCardStore

app = typer.Typer(
    name="cardscan",
    help="Scan business card images into structured contact records.",
    add_completion=False,
)
cards_app = typer.Typer(help="Manage saved business cards.", no_args_is_help=True)
app.add_typer(cards_app, name="cards")

console = Console()
err_console = Console(stderr=True)

StoreOption = Annotated[
    Path | None,
    typer.Option("--store", help="Card store JSON file (default from settings)"),
]


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
):
    """Scan business card images into structured contact records."""
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _create_repository(settings: Settings, lang: str | None = None) -> OCRRepository:
    """Build the OCR repository around a PaddleOCR engine."""
    # needs the paddle extra
    from card_scanner.ocr.paddle_ocr import PaddleOCREngine

    engine = PaddleOCREngine(lang=lang or settings.ocr_lang, auto_crop=settings.ocr_auto_crop)
    cache = MemoryOCRCache(
        retention=settings.cache_retention, max_entries=settings.cache_max_entries
    )
    return OCRRepository(engine, cache)


def _create_card_parser(
    settings: Settings,
    local: bool,
    ollama_url: str | None,
    model: str | None,
) -> CardParser:
    if local:
        return LocalCardParser()
    return OllamaCardParser(
        model=model or settings.ollama_model,
        base_url=ollama_url or settings.ollama_url,
        timeout=settings.ollama_timeout,
    )


def _fail(error: Exception) -> typer.Exit:
    if isinstance(error, CardScannerError):
        err_console.print(f"[red]Error:[/red] {error.user_message}")
        logging.getLogger(__name__).debug("%s", error)
    else:
        err_console.print(f"[red]Error:[/red] {escape(str(error))}")
    return typer.Exit(1)


@app.command()
def parse(
    image_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the business card image",
            exists=True,
            readable=True,
            dir_okay=False,
        ),
    ],
    output_json: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output JSON instead of formatted output"),
    ] = False,
    ocr_only: Annotated[
        bool,
        typer.Option("--ocr-only", help="Only run OCR, skip field parsing"),
    ] = False,
    lang: Annotated[
        str | None,
        typer.Option("--lang", "-l", help="OCR language (default from settings)"),
    ] = None,
    ollama_url: Annotated[
        str | None,
        typer.Option("--ollama-url", help="Ollama server base URL"),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Ollama model name"),
    ] = None,
    local: Annotated[
        bool,
        typer.Option("--local", help="Use the offline regex parser instead of Ollama"),
    ] = False,
    save: Annotated[
        bool,
        typer.Option("--save", help="Save the parsed card to the card store"),
    ] = False,
    store: StoreOption = None,
):
    """Parse a business card image and extract contact information."""
    settings = get_settings()
    try:
        repository = _create_repository(settings, lang)
        if ocr_only:
            result = repository.recognize_text(image_path.read_bytes(), OCROptions(language=lang))
            if output_json:
                console.print_json(result.model_dump_json(exclude={"image_data", "blocks"}))
            else:
                console.print(
                    Panel(
                        escape(result.raw_text) if result.raw_text else "[dim](no text)[/dim]",
                        title=f"OCR Result ({result.confidence:.0%}, {result.ocr_engine})",
                        border_style="blue",
                    )
                )
            return

        parser = BusinessCardParser(
            repository,
            _create_card_parser(settings, local, ollama_url, model),
            fallback_parser=None if local else LocalCardParser(),
        )
        card = parser.parse(image_path, options=OCROptions(language=lang))
        if save:
            JsonCardStore(store or settings.store_path).save_card(card)
    except (CardScannerError, FileNotFoundError, ImportError) as e:
        raise _fail(e) from e

    if output_json:
        console.print_json(card.model_dump_json())
    else:
        _print_card(card)
        if save:
            console.print(f"[dim]Saved as {card.id}[/dim]")


def _print_card(card: BusinessCard) -> None:
    """Print formatted business card info."""
    console.print()
    console.print(f"[bold cyan]{escape(card.get_display_name())}[/bold cyan]")
    if card.job_title:
        console.print(f"[dim]{escape(card.job_title)}[/dim]")
    if card.company:
        console.print(f"[green]{escape(card.company)}[/green]")
    console.print()

    table = Table(show_header=False, box=None)
    table.add_column("Type", style="dim")
    table.add_column("Value")
    for label, value in (
        ("Email", card.email),
        ("Phone", card.phone),
        ("Mobile", card.mobile),
        ("Address", card.address),
        ("Website", card.website),
    ):
        if value:
            table.add_row(label, escape(value))
    if table.row_count:
        console.print(table)
        console.print()


@app.command()
def batch(
    inputs: Annotated[
        list[Path],
        typer.Argument(help="Image files or directories to process"),
    ],
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Output file path (JSON or CSV)"),
    ],
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: json or csv"),
    ] = "json",
    workers: Annotated[
        int | None,
        typer.Option("--workers", "-w", min=1, help="Images recognized in parallel"),
    ] = None,
    lang: Annotated[
        str | None,
        typer.Option("--lang", "-l", help="OCR language (default from settings)"),
    ] = None,
):
    """Run OCR over many images and export the results."""
    format = format.lower()
    if format not in ("json", "csv"):
        err_console.print(f"[red]Error:[/red] Invalid format '{format}'. Use 'json' or 'csv'.")
        raise typer.Exit(1)

    settings = get_settings()
    try:
        repository = _create_repository(settings, lang)
    except ImportError as e:
        raise _fail(e) from e

    processor = BatchProcessor(repository, max_workers=workers or settings.batch_workers)
    images = processor.collect_images(inputs)
    if not images:
        console.print("[yellow]Warning:[/yellow] No images found to process.")
        raise typer.Exit(0)

    console.print(f"Processing {len(images)} image(s)...")
    result = processor.process_paths(images, OCROptions(language=lang))

    if format == "csv":
        content = processor.to_csv(result, images)
    else:
        content = processor.to_json(result, images)
    output.write_text(content, encoding="utf-8")

    console.print(
        f"[green]Done:[/green] {len(result.successful)} succeeded, "
        f"{len(result.failed)} failed ({result.success_rate:.0%}), "
        f"{result.total_time_ms:.1f}ms total"
    )
    console.print(f"Output: {output}")


@app.command()
def engines(
    lang: Annotated[
        str | None,
        typer.Option("--lang", "-l", help="OCR language (default from settings)"),
    ] = None,
    check: Annotated[
        bool, typer.Option("--check", help="Run a recognition self-test")
    ] = False,
):
    """List available OCR engines."""
    try:
        repository = _create_repository(get_settings(), lang)
    except ImportError as e:
        raise _fail(e) from e

    table = Table(title="OCR engines")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Languages")
    table.add_column("Status")
    current = repository.get_current_engine().id
    for info in repository.get_available_engines():
        status = "active" if info.id == current else ("available" if info.is_available else "unavailable")
        if check:
            health = repository.test_engine(info.id)
            status += f", {'healthy' if health.is_healthy else 'unhealthy'}"
        table.add_row(
            info.id, info.name, info.version, ", ".join(info.supported_languages), status
        )
    console.print(table)


@cards_app.command("list")
def list_cards(
    limit: Annotated[int, typer.Option("--limit", "-n", min=1)] = 20,
    store: StoreOption = None,
):
    """List saved cards, newest first."""
    try:
        cards = JsonCardStore(store or get_settings().store_path).get_cards(limit)
    except CardScannerError as e:
        raise _fail(e) from e
    _print_card_table(cards)


@cards_app.command("search")
def search_cards(
    query: Annotated[str, typer.Argument(help="Text to look for")],
    store: StoreOption = None,
):
    """Search saved cards by name, company, job title, email or tag."""
    try:
        cards = JsonCardStore(store or get_settings().store_path).search_cards(query)
    except CardScannerError as e:
        raise _fail(e) from e
    _print_card_table(cards)


@cards_app.command("delete")
def delete_card(
    card_id: Annotated[str, typer.Argument(help="Id of the card to delete")],
    store: StoreOption = None,
):
    """Delete a saved card."""
    try:
        JsonCardStore(store or get_settings().store_path).delete_card(card_id)
    except CardScannerError as e:
        raise _fail(e) from e
    console.print(f"Deleted {escape(card_id)}")


def _print_card_table(cards: list[BusinessCard]) -> None:
    if not cards:
        console.print("[yellow]No cards found.[/yellow]")
        return
    table = Table()
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Name", style="cyan")
    table.add_column("Company")
    table.add_column("Title")
    table.add_column("Email")
    for card in cards:
        values = (card.id, card.name, card.company, card.job_title, card.email)
        table.add_row(*(escape(value or "") for value in values))
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from card_scanner import __version__

    console.print(f"cardscan version {__version__}")


if __name__ == "__main__":
    app()
