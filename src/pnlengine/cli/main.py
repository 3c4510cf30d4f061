"""pnlengine CLI main entry point."""

import click

from pnlengine import __version__
from pnlengine.cli.commands import gate_command, report_command


@click.group()
@click.version_option(version=__version__)
def main():
    """pnlengine - Trade ledger P&L and position accounting"""
    pass


# Register commands
main.add_command(report_command)
main.add_command(gate_command)


if __name__ == "__main__":
    main()
