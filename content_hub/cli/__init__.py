"""
Command Line Interface for Content Hub.
"""

import asyncio
from typing import Any, Dict, List, Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..core.factory import TableFactory
from ..core.gateway import QueryGateway
from ..core.languages import LanguageService
from ..db.base import get_session_local, init_database
from ..errors import ContentHubError
from ..logging_config import configure_logging

app = typer.Typer(help="Content Hub - runtime-defined content tables")
console = Console()


def parse_field(token: str) -> Dict[str, Any]:
    """Parse ``NAME:TYPE[:FOREIGN_TABLE[:DISPLAY]]`` into a field definition."""
    parts = token.split(":")
    if len(parts) < 2 or len(parts) > 4 or not parts[0] or not parts[1]:
        raise typer.BadParameter(
            f"Invalid field '{token}', expected NAME:TYPE[:FOREIGN_TABLE[:DISPLAY]]"
        )
    field: Dict[str, Any] = {"name": parts[0], "type": parts[1]}
    if len(parts) > 2 and parts[2]:
        field["foreign_table"] = parts[2]
    if len(parts) > 3 and parts[3]:
        field["foreign_display"] = parts[3]
    return field


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
    workers: Optional[int] = typer.Option(None, help="Number of worker processes"),
):
    """Start the Content Hub API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit("Starting Content Hub", style="bold blue"))
    console.print(f"🚀 Content Hub is running on http://{host}:{port}")
    uvicorn.run(
        "content_hub.api:app",
        host=host,
        port=port,
        reload=reload,
        workers=1 if reload else (workers or settings.api_workers),
    )


@app.command("init-db")
def init_db(
    seed: bool = typer.Option(True, help="Insert the built-in language list"),
):
    """Create the system tables."""
    settings = get_settings()
    configure_logging(settings.log_level, "console")
    asyncio.run(init_database(seed_languages=seed))
    console.print("✅ Database initialized")


@app.command()
def tables():
    """List content tables with their record counts."""
    session = get_session_local()()
    try:
        content_tables = QueryGateway(session).list_tables()
    finally:
        session.close()

    if not content_tables:
        console.print("No content tables defined")
        return

    table = Table(title="Content Tables", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="yellow")
    table.add_column("Records", style="green")
    table.add_column("Fields")

    for entry in content_tables:
        fields = ", ".join(f"{f['name']} ({f['type']})" for f in entry["fields"])
        table.add_row(entry["name"], str(entry["record_count"]), fields)

    console.print(table)


@app.command("create-table")
def create_table(
    name: str = typer.Argument(..., help="Table name"),
    fields: List[str] = typer.Argument(
        ..., help="Field definitions as NAME:TYPE[:FOREIGN_TABLE[:DISPLAY]]"
    ),
):
    """Create a content table."""
    definitions = [parse_field(token) for token in fields]
    session = get_session_local()()
    try:
        created = TableFactory(session).create_table(name, definitions)
    except ContentHubError as e:
        console.print(f"❌ {e.message}")
        raise typer.Exit(code=1)
    finally:
        session.close()

    console.print(f"✅ Created table '{name}' with {len(created)} fields")


@app.command()
def languages():
    """List all languages."""
    session = get_session_local()()
    try:
        rows = [language.to_dict() for language in LanguageService(session).all()]
    finally:
        session.close()

    if not rows:
        console.print("No languages defined")
        return

    table = Table(title="Languages", show_header=True, header_style="bold magenta")
    table.add_column("Code", style="cyan")
    table.add_column("Name")
    table.add_column("Native Name")
    table.add_column("Status", style="green")

    for row in rows:
        status = "🟢 Active" if row["is_active"] else "🔴 Inactive"
        if row["is_default"]:
            status += " (default)"
        table.add_row(row["code"], row["name"], row["native_name"], status)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Content Hub v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
