"""Entry point for ``python -m lockgate``."""

from lockgate.cli import cli

if __name__ == "__main__":
    cli()
