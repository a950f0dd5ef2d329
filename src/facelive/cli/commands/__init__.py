"""CLI command handlers."""

from facelive.cli.commands.info import run_info
from facelive.cli.commands.live import run_live
from facelive.cli.commands.replay import run_replay

__all__ = [
    "run_info",
    "run_live",
    "run_replay",
]
