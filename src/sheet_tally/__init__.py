"""sheet-tally — Filter spreadsheet rows, fold merged records and total amounts."""

__version__ = "0.1.0"
