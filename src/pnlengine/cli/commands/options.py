"""Shared click parameter types and options."""

import dataclasses
from decimal import Decimal, InvalidOperation
from typing import Any

import click

from pnlengine.system import LoggerFactory, get_system_config


class DecimalParamType(click.ParamType):
    """Click parameter parsed straight into Decimal (no float rounding)."""

    name = "decimal"

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Decimal:
        try:
            result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        except InvalidOperation:
            self.fail(f"{value!r} is not a valid number", param, ctx)
        if not result.is_finite():
            self.fail(f"{value!r} is not a finite number", param, ctx)
        return result


DECIMAL = DecimalParamType()

log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set logging level (DEBUG shows per-lot matching)",
)


def setup_logging(log_level: str | None) -> None:
    """Configure logging from system.yaml, with an optional level override."""
    logging_config = get_system_config().logging
    if log_level:
        logging_config = dataclasses.replace(logging_config, level=log_level.upper())
    LoggerFactory.configure(logging_config.to_logger_config())
