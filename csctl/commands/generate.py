import logging

import typer
from rich.console import Console

from csctl.config import Config
from csctl.modules import COMMAND_ERRORS
from csctl.modules.install_config import write_k0s_config

app = typer.Typer()
console = Console()
logger = logging.getLogger("csctl.commands.generate")


@app.command("k0s-config")
def generate_k0s_config_cmd(
    config: str = typer.Option(Config.CONFIG_FILE, "--config", "-c", help="Path to the install config"),
    output: str = typer.Option(Config.K0S_CONFIG_FILE, "--output", "-o", help="Where to write the k0s config"),
):
    """Generate the k0s ClusterConfig from an install config."""
    try:
        k0s = write_k0s_config(config, output)
    except (ValueError, *COMMAND_ERRORS) as e:
        logger.debug("generate k0s-config failed", exc_info=True)
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✅ k0s config for {k0s.metadata.name} written to {output}[/green]")
