"""Job processing pipeline: fetch HTML, render, route and print one job."""

import logging
import threading
from datetime import UTC, datetime

from printstation.api import ApiClient
from printstation.config import PrintStationConfig
from printstation.events import JOB_STATUS, EventBus
from printstation.history import JobHistory, JobStatus
from printstation.printing.base import PrinterBackend
from printstation.rendering.base import PageLayout, RenderService
from printstation.retry import retry_call, run_with_timeout
from printstation.routing import (
    NoPrinterAvailableError,
    job_document_type,
    page_layout_for,
    select_printer,
)

logger = logging.getLogger(__name__)

# Seconds allowed for one render
RENDER_TIMEOUT = 60

# Print submission bounds
PRINT_TIMEOUT = 30
PRINT_ATTEMPTS = 3
PRINT_RETRY_DELAY = 2.0


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _job_copies(job: dict) -> int:
    try:
        copies = int(job.get("copies") or 1)
    except (TypeError, ValueError):
        return 1
    return max(1, copies)


class JobProcessor:
    """Runs print jobs through the processing state machine.

    received -> processing -> completed | failed

    Each step's failure ends the job as failed; errors never escape
    process(). Only one job is rendered and printed at a time, including
    manual retries that run outside the polling thread.
    """

    def __init__(
        self,
        config: PrintStationConfig,
        api: ApiClient,
        history: JobHistory,
        renderer: RenderService,
        printer: PrinterBackend,
        events: EventBus | None = None,
        print_attempts: int = PRINT_ATTEMPTS,
        print_retry_delay: float = PRINT_RETRY_DELAY,
        print_timeout: float = PRINT_TIMEOUT,
        render_timeout: float = RENDER_TIMEOUT,
    ):
        """Initialize the processor.

        Args:
            config: Agent configuration (printer mappings).
            api: Print API client.
            history: Local job history.
            renderer: HTML-to-PDF renderer.
            printer: Printer backend.
            events: Event bus for job-status events.
            print_attempts: Print submissions tried before failing.
            print_retry_delay: Seconds between print submissions.
            print_timeout: Seconds allowed per print submission.
            render_timeout: Seconds allowed per render.
        """
        self.config = config
        self.api = api
        self.history = history
        self.renderer = renderer
        self.printer = printer
        self.events = events or EventBus()
        self.print_attempts = print_attempts
        self.print_retry_delay = print_retry_delay
        self.print_timeout = print_timeout
        self.render_timeout = render_timeout
        self._lock = threading.Lock()

    def _set_status(self, job_id: str, status: JobStatus, error: str | None = None, **fields):
        self.history.set_status(job_id, status, error_message=error, **fields)
        payload = {"id": job_id, "status": status.value}
        if error is not None:
            payload["error"] = error
        self.events.emit(JOB_STATUS, payload)

    def resolve_printer(self, document_type: str | None) -> str:
        """Pick the printer for a document type.

        Falls back from the configured mappings to the system default
        printer.

        Raises:
            NoPrinterAvailableError: If neither yields a printer.
        """
        printer_name = select_printer(document_type, self.config.printer_mappings)
        if printer_name:
            return printer_name

        printer_name = self.printer.get_default_printer()
        if printer_name:
            logger.warning(
                f"No printer mapped for {document_type!r}, using system default {printer_name}"
            )
            return printer_name

        raise NoPrinterAvailableError(f"No printer available for document type {document_type!r}")

    def render(self, html: str, layout: PageLayout) -> bytes:
        pdf_data = run_with_timeout(self.renderer.render, self.render_timeout, html, layout)
        if not pdf_data:
            raise ValueError("Renderer returned an empty document")
        return pdf_data

    def print_document(
        self, pdf_data: bytes, printer_name: str, job: dict, layout: PageLayout
    ) -> None:
        """Submit a PDF, retrying timeouts and failures with a fixed delay.

        Raises:
            Exception: The last submission error once attempts run out.
        """
        retry_call(
            run_with_timeout,
            self.printer.print_pdf,
            self.print_timeout,
            pdf_data,
            title=f"PrintStation Job {job['id']}",
            copies=_job_copies(job),
            printer_name=printer_name,
            fit_to_page=layout.fit_to_page,
            attempts=self.print_attempts,
            delay=self.print_retry_delay,
        )

    def process(self, job: dict) -> bool:
        """Process a single print job end to end.

        Args:
            job: Job record (from the poll response or local history).

        Returns:
            bool: True if the job was printed.
        """
        with self._lock:
            return self._process(job)

    def _process(self, job: dict) -> bool:
        job_id = str(job["id"])
        document_type = job_document_type(job)
        logger.info(f"Processing job {job_id} ({document_type})")

        try:
            self.api.notify_status(job_id, JobStatus.PROCESSING.value)
            self._set_status(job_id, JobStatus.PROCESSING)

            html = self.api.fetch_html(job_id)

            layout = page_layout_for(job)
            pdf_data = self.render(html, layout)

            printer_name = self.resolve_printer(document_type)

            self.print_document(pdf_data, printer_name, job, layout)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Job {job_id} failed: {error}")
            self.api.notify_status(
                job_id, JobStatus.FAILED.value, {"error": error, "timestamp": _timestamp()}
            )
            self._set_status(job_id, JobStatus.FAILED, error=error)
            return False

        self.api.notify_status(
            job_id,
            JobStatus.COMPLETED.value,
            {"printer": printer_name, "timestamp": _timestamp()},
        )
        self._set_status(job_id, JobStatus.COMPLETED, printer=printer_name)
        logger.info(f"Job {job_id} printed on {printer_name}")
        return True
