"""Printer backend interface and helpers shared by the platform backends."""

import logging
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Values returned by get_printer_status()
STATUS_READY = "ready"
STATUS_BUSY = "busy"
STATUS_OFFLINE = "offline"
STATUS_UNKNOWN = "unknown"


class PrinterError(Exception):
    """A print submission was rejected or could not be made."""

    pass


def printer_info(name: str, state: int, state_message: str = "", is_default: bool = False) -> dict:
    """Printer description in the shape every backend returns."""
    return {
        "name": name,
        "state": state,
        "state_message": state_message or "",
        "is_default": is_default,
    }


@contextmanager
def spool_pdf(pdf_data: bytes, grace_seconds: float = 0) -> Iterator[str]:
    """Write PDF bytes to a temporary file for the spooler.

    The file is removed on exit, after `grace_seconds` if the spooler reads
    it asynchronously.

    Yields:
        str: Path of the temporary PDF.
    """
    with tempfile.NamedTemporaryFile(suffix=".pdf", prefix="printstation-", delete=False) as f:
        f.write(pdf_data)
        path = f.name
    logger.debug(f"Spooled {len(pdf_data)} bytes to {path}")

    try:
        yield path
    finally:
        if grace_seconds:
            time.sleep(grace_seconds)
        Path(path).unlink(missing_ok=True)


@runtime_checkable
class PrinterBackend(Protocol):
    """Operations the job processor and CLI need from a printing system."""

    @property
    def is_available(self) -> bool:
        """True if jobs can be submitted on this machine."""
        ...

    def get_printers(self) -> list[dict]:
        """Installed printers as printer_info() dicts."""
        ...

    def get_default_printer(self) -> str | None:
        """System default printer, or None if there is none."""
        ...

    def get_printer_status(self, printer_name: str | None = None) -> str:
        """One of 'ready', 'busy', 'offline' or 'unknown'."""
        ...

    def print_pdf(
        self,
        pdf_data: bytes,
        title: str = "PrintStation Job",
        copies: int = 1,
        printer_name: str | None = None,
        fit_to_page: bool = True,
    ) -> bool:
        """Submit a PDF to a printer.

        Args:
            pdf_data: Rendered document.
            title: Job title shown in the print queue.
            copies: Number of copies.
            printer_name: Target printer (None = system default).
            fit_to_page: Scale to the paper; False prints at 100% for
                thermal receipts.

        Returns:
            bool: True once the spooler accepted the job.

        Raises:
            PrinterError: If the job was not accepted.
        """
        ...
