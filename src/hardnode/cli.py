"""Main CLI application."""

import typer

from hardnode import __version__
from hardnode.commands import firewall, provision, status, verify

app = typer.Typer(
    name="hardnode",
    help="Bootstrap an Ubuntu host as a hardened mesh node (key-only SSH + Tailscale)",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Add subcommand groups
app.add_typer(firewall.app, name="firewall")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"hardnode {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Bootstrap an Ubuntu host as a hardened mesh node (key-only SSH + Tailscale)."""
    pass


# Register standalone commands
app.command(name="provision")(provision.provision)
app.command(name="verify")(verify.verify)
app.command(name="status")(status.status)


if __name__ == "__main__":
    app()
