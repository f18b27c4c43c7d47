"""Allow ``python -m sheet_tally``."""

from sheet_tally import cli

if __name__ == "__main__":
    cli.app()
