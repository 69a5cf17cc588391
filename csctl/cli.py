import logging

import typer
from rich.console import Console

from csctl.commands import init, update, generate
from csctl.config import Config
from csctl.logging import setup_logger

app = typer.Typer(help="Codesphere install config and secret lifecycle CLI.")
console = Console()

debug_mode = False

def setup_logging(debug_mode: bool = False) -> logging.Logger:
    """Route every csctl logger through one handler at the configured level."""
    level = logging.DEBUG if debug_mode else None
    logger = setup_logger("csctl", level)
    # Key generation through paramiko is chatty below WARNING
    if not debug_mode:
        logging.getLogger('paramiko').setLevel(logging.WARNING)
    return logger

# Command groups
app.add_typer(init.app, name="init", help="Create new installation files")
app.add_typer(update.app, name="update", help="Update existing installation files")
app.add_typer(generate.app, name="generate", help="Derive documents from an install config")

# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """csctl - Codesphere install config CLI."""
    global debug_mode
    debug_mode = debug
    logger = setup_logging(debug)
    try:
        Config.validate()
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)
    if debug:
        logger.debug("Debug mode enabled")

if __name__ == "__main__":
    app()
