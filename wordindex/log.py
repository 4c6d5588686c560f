"""Console logging for the CLI and API."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str = "INFO") -> None:
    """Route every `[Component] message` log line through rich."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, markup=False)],
        force=True,
    )
    # pdfminer (under pdfplumber) is very chatty at DEBUG
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
