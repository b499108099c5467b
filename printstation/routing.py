"""Printer selection and page layout rules for print jobs."""

import logging

from printstation.config import DEFAULT_MAPPING_KEY
from printstation.rendering.base import PageLayout

logger = logging.getLogger(__name__)

# Document types printed on narrow receipt printers
THERMAL_TYPES = frozenset({"ticket", "kitchen", "bar", "cocina", "comanda", "receipt", "recibo"})

# Explicit thermal paper widths
THERMAL_FORMATS = frozenset({"80mm", "58mm"})

DEFAULT_PAGE_FORMAT = "A4"
DEFAULT_THERMAL_WIDTH = "80mm"
STANDARD_MARGIN_MM = 10.0
THERMAL_PADDING_MM = 10.0


class NoPrinterAvailableError(Exception):
    """No mapped printer and no system default printer."""

    pass


def job_document_type(job: dict) -> str | None:
    """Get the document type of a job.

    Older servers send it as 'document_type' instead of 'type'.
    """
    return job.get("type") or job.get("document_type")


def select_printer(document_type: str | None, mappings: dict[str, str] | None) -> str | None:
    """Map a document type to a configured printer.

    Types are compared exactly as given, without case folding.

    Args:
        document_type: Job document type.
        mappings: Document type -> printer name, with optional "default".

    Returns:
        str | None: Printer name, or None if neither the type nor the
            default is mapped.
    """
    mappings = mappings or {}

    if document_type is not None:
        printer_name = mappings.get(document_type)
        if printer_name:
            return printer_name

    default = mappings.get(DEFAULT_MAPPING_KEY)
    if default:
        logger.warning(f"No mapping for document type {document_type!r}, using default printer")
        return default

    return None


def is_thermal_job(job: dict) -> bool:
    """Check if a job goes to a narrow-format receipt printer.

    Args:
        job: Job record.

    Returns:
        bool: True for ticket/kitchen/bar style types or 80mm/58mm formats.
    """
    return job_document_type(job) in THERMAL_TYPES or job.get("format") in THERMAL_FORMATS


def page_layout_for(job: dict) -> PageLayout:
    """Build render and print hints for a job.

    Thermal jobs keep the paper width, grow to the content height plus
    padding, have no margins and print unscaled. Everything else prints on
    a fixed page scaled to fit.

    Args:
        job: Job record.

    Returns:
        PageLayout: Layout hints.
    """
    page_format = job.get("format")

    if is_thermal_job(job):
        width = page_format if page_format in THERMAL_FORMATS else DEFAULT_THERMAL_WIDTH
        return PageLayout(
            page_format=width,
            width_mm=float(width.removesuffix("mm")),
            margin_mm=0.0,
            height_padding_mm=THERMAL_PADDING_MM,
            thermal=True,
        )

    return PageLayout(
        page_format=page_format or DEFAULT_PAGE_FORMAT,
        margin_mm=STANDARD_MARGIN_MM,
        thermal=False,
    )
