# lqa_batch/cli/commands: Command modules for the LQA Batch CLI.
#
# Each module in this package provides one CLI command.

from .normalize import normalize
from .run import run
from .summary import summary

__all__ = [
    "normalize",
    "run",
    "summary",
]
