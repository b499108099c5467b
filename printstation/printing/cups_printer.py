"""CUPS backend for Linux and macOS.

Talks to cupsd through pycups when it is installed and falls back to the
lp/lpstat command line tools otherwise.
"""

import logging
import subprocess

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

# Try to import cups, but make it optional
try:
    import cups

    CUPS_AVAILABLE = True
except ImportError:
    CUPS_AVAILABLE = False
    logger.warning("pycups not available - using lp command fallback")

# IPP printer-state values
CUPS_STATE_IDLE = 3
CUPS_STATE_PROCESSING = 4
CUPS_STATE_STOPPED = 5

_STATE_STATUS = {
    CUPS_STATE_IDLE: STATUS_READY,
    CUPS_STATE_PROCESSING: STATUS_BUSY,
    CUPS_STATE_STOPPED: STATUS_OFFLINE,
}

LPSTAT_TIMEOUT = 10
LP_TIMEOUT = 30


def scaling_options(fit_to_page: bool) -> dict[str, str]:
    """CUPS job options for fit-to-page or literal-size printing."""
    if fit_to_page:
        return {"fit-to-page": "true"}
    return {"scaling": "100", "fit-to-page": "false"}


def _lpstat(*args: str) -> str | None:
    """Run lpstat and return its stdout, or None if it could not run."""
    try:
        result = subprocess.run(
            ["lpstat", *args], capture_output=True, text=True, timeout=LPSTAT_TIMEOUT
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug(f"lpstat {' '.join(args)} unavailable: {e}")
        return None
    return result.stdout


class CupsPrinter:
    """Printer backend for CUPS."""

    def __init__(self):
        self._connection = None

        if CUPS_AVAILABLE:
            try:
                self._connection = cups.Connection()
            except RuntimeError as e:
                logger.error(f"Could not connect to CUPS: {e}")

    @property
    def is_available(self) -> bool:
        return self._connection is not None or self._lp_installed()

    def _lp_installed(self) -> bool:
        try:
            result = subprocess.run(["which", "lp"], capture_output=True, text=True, timeout=5)
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False
        return result.returncode == 0

    def get_printers(self) -> list[dict]:
        """List the CUPS destinations.

        Returns:
            list[dict]: printer_info() dicts; empty if CUPS cannot be queried.
        """
        if self._connection:
            try:
                default = self._connection.getDefault()
                destinations = self._connection.getPrinters()
            except Exception as e:
                logger.error(f"Error listing CUPS printers: {e}")
                return []
            return [
                printer_info(
                    name,
                    attrs.get("printer-state", 0),
                    attrs.get("printer-state-message", ""),
                    name == default,
                )
                for name, attrs in destinations.items()
            ]

        output = _lpstat("-p")
        if output is None:
            return []

        default = self.get_default_printer()
        printers = []
        # "printer NAME is idle.  enabled since ..." / "printer NAME disabled since ..."
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 2 or parts[0] != "printer":
                continue
            state = CUPS_STATE_STOPPED if "disabled" in line else CUPS_STATE_IDLE
            printers.append(printer_info(parts[1], state, is_default=parts[1] == default))
        return printers

    def get_default_printer(self) -> str | None:
        if self._connection:
            try:
                return self._connection.getDefault()
            except Exception as e:
                logger.error(f"Error reading CUPS default printer: {e}")
                return None

        output = _lpstat("-d")
        if not output or "system default destination:" not in output:
            return None
        return output.split(":", 1)[1].strip() or None

    def get_printer_status(self, printer_name: str | None = None) -> str:
        """Map the IPP printer-state of a destination to a status string.

        Without pycups the state cannot be read and 'unknown' is returned.
        """
        name = printer_name or self.get_default_printer()
        if not name or not self._connection:
            return STATUS_UNKNOWN

        try:
            destinations = self._connection.getPrinters()
        except Exception as e:
            logger.error(f"Error reading printer state: {e}")
            return STATUS_UNKNOWN

        if name not in destinations:
            return STATUS_OFFLINE
        return _STATE_STATUS.get(destinations[name].get("printer-state"), STATUS_UNKNOWN)

    def print_pdf(
        self,
        pdf_data: bytes,
        title: str = "PrintStation Job",
        copies: int = 1,
        printer_name: str | None = None,
        fit_to_page: bool = True,
    ) -> bool:
        """Submit a PDF to CUPS.

        Raises:
            PrinterError: If CUPS or lp rejects the job.
        """
        name = printer_name or self.get_default_printer()
        options = scaling_options(fit_to_page)

        with spool_pdf(pdf_data) as path:
            if self._connection and name:
                self._submit_ipp(path, name, title, copies, options)
            else:
                self._submit_lp(path, name, title, copies, options)
        return True

    def _submit_ipp(self, path: str, name: str, title: str, copies: int, options: dict) -> None:
        try:
            job_id = self._connection.printFile(
                name, path, title, {"copies": str(copies), **options}
            )
        except cups.IPPError as err:
            raise PrinterError(f"CUPS rejected job: {err}") from err
        logger.info(f"CUPS job {job_id} queued on {name} ({copies} copies)")

    def _submit_lp(
        self, path: str, name: str | None, title: str, copies: int, options: dict
    ) -> None:
        cmd = ["lp", "-t", title, "-n", str(copies)]
        if name:
            cmd.extend(["-d", name])
        for key, value in options.items():
            cmd.extend(["-o", f"{key}={value}"])
        cmd.append(path)

        logger.debug(f"Print command: {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=LP_TIMEOUT)
        except subprocess.TimeoutExpired as err:
            raise PrinterError(f"lp timed out after {LP_TIMEOUT}s") from err
        except FileNotFoundError as err:
            raise PrinterError("lp command not found - is CUPS installed?") from err

        if result.returncode != 0:
            raise PrinterError(f"lp command failed: {result.stderr.strip()}")
        logger.info(f"Queued via lp on {name or 'default'}: {result.stdout.strip()}")
