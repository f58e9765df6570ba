# qcsim/cli.py
from qcsim.__main__ import app as _typer_app
from qcsim.logging_config import setup_logging


def main():
    """Console script entrypoint for the qcsim CLI."""
    setup_logging()
    _typer_app()
