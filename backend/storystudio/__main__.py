"""Entry point for ``python -m storystudio``."""

from storystudio.cli.commands import app

app()
