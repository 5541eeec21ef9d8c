"""CLI command modules for gigmarket."""

from gigmarket.cli.commands.jobs import cmd_jobs, cmd_sweep
from gigmarket.cli.commands.wallet import cmd_wallet

__all__ = ["cmd_jobs", "cmd_sweep", "cmd_wallet"]
