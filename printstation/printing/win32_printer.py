"""Windows backend using win32print and the shell "printto" verb."""

import logging

from printstation.printing.base import (
    STATUS_BUSY,
    STATUS_OFFLINE,
    STATUS_READY,
    STATUS_UNKNOWN,
    PrinterError,
    printer_info,
    spool_pdf,
)

logger = logging.getLogger(__name__)

# Try to import win32 modules
try:
    import win32api
    import win32print

    WIN32_AVAILABLE = True
except ImportError:
    WIN32_AVAILABLE = False
    logger.debug("pywin32 not available - Windows printing disabled")

# Seconds the PDF handler gets to open the spooled file before it is removed
SPOOL_GRACE_SECONDS = 2

PRINTER_STATUS_PRINTING = 0x00000004
PRINTER_STATUS_OFFLINE = 0x00000400

# Reported as the IPP "idle" state so listings match the CUPS backend
_IDLE_STATE = 3


def _status_from_flags(flags: int) -> str:
    if flags == 0:
        return STATUS_READY
    if flags & PRINTER_STATUS_OFFLINE:
        return STATUS_OFFLINE
    if flags & PRINTER_STATUS_PRINTING:
        return STATUS_BUSY
    return STATUS_UNKNOWN


class Win32Printer:
    """Printer backend for the Windows spooler.

    Printing is delegated to the registered PDF handler, so page scaling
    follows the handler and driver settings.
    """

    @property
    def is_available(self) -> bool:
        return WIN32_AVAILABLE

    def get_printers(self) -> list[dict]:
        if not WIN32_AVAILABLE:
            return []

        default = self.get_default_printer()
        try:
            entries = win32print.EnumPrinters(
                win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
            )
        except Exception as e:
            logger.error(f"Error enumerating printers: {e}")
            return []

        return [
            printer_info(name, _IDLE_STATE, comment, name == default)
            for _flags, _description, name, comment in entries
        ]

    def get_default_printer(self) -> str | None:
        if not WIN32_AVAILABLE:
            return None

        try:
            return win32print.GetDefaultPrinter() or None
        except Exception as e:
            logger.error(f"Error reading default printer: {e}")
            return None

    def get_printer_status(self, printer_name: str | None = None) -> str:
        name = printer_name or self.get_default_printer()
        if not WIN32_AVAILABLE or not name:
            return STATUS_UNKNOWN

        try:
            handle = win32print.OpenPrinter(name)
            try:
                flags = win32print.GetPrinter(handle, 2)["Status"]
            finally:
                win32print.ClosePrinter(handle)
        except Exception as e:
            logger.error(f"Error reading status of {name}: {e}")
            return STATUS_UNKNOWN

        return _status_from_flags(flags)

    def print_pdf(
        self,
        pdf_data: bytes,
        title: str = "PrintStation Job",
        copies: int = 1,
        printer_name: str | None = None,
        fit_to_page: bool = True,
    ) -> bool:
        """Hand a PDF to the shell print verb, once per copy.

        Raises:
            PrinterError: If pywin32 is missing or ShellExecute fails.
        """
        if not WIN32_AVAILABLE:
            raise PrinterError("pywin32 is not installed")

        name = printer_name or self.get_default_printer()
        if not fit_to_page:
            logger.debug("Shell printing cannot disable scaling; using driver settings")

        with spool_pdf(pdf_data, grace_seconds=SPOOL_GRACE_SECONDS) as path:
            try:
                for _ in range(copies):
                    if name:
                        win32api.ShellExecute(0, "printto", path, f'"{name}"', ".", 0)
                    else:
                        win32api.ShellExecute(0, "print", path, None, ".", 0)
            except Exception as e:
                raise PrinterError(f"Windows print failed: {e}") from e

        logger.info(f"'{title}' sent to {name or 'default printer'} ({copies} copies)")
        return True
