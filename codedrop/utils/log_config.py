"""Logging setup — rich console handler for the whole process."""

import logging

from rich.logging import RichHandler


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # uvicorn's access log duplicates the request-id middleware output
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
