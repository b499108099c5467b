"""Printing backends.

CUPS on Linux and macOS, the Windows spooler on Windows. get_printer()
picks the backend for the running platform.
"""

import platform

from printstation.printing.base import PrinterBackend, PrinterError


def get_printer() -> PrinterBackend:
    """Backend for the current platform."""
    if platform.system() == "Windows":
        from printstation.printing.win32_printer import Win32Printer

        return Win32Printer()

    from printstation.printing.cups_printer import CupsPrinter

    return CupsPrinter()


__all__ = [
    "PrinterBackend",
    "PrinterError",
    "get_printer",
]
