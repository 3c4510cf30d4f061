"""Commands __init__ - exports all commands."""

from pnlengine.cli.commands.gate import gate_command
from pnlengine.cli.commands.report import report_command

__all__ = ["gate_command", "report_command"]
