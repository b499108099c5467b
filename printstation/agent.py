"""PrintStation agent - polls the print API for jobs and prints them."""

import logging
import signal
import sys
import threading
from collections.abc import Callable

from printstation.api import ApiClient, ApiError
from printstation.config import (
    DEFAULT_MAPPING_KEY,
    NotConfiguredError,
    PrintStationConfig,
    get_config,
    normalize_printer_mappings,
    reset_config,
)
from printstation.events import JOBS_UPDATE, EventBus
from printstation.history import JobHistory, JobStatus
from printstation.printing import PrinterBackend, get_printer
from printstation.processor import JobProcessor
from printstation.rendering import RenderService, get_renderer
from printstation.scheduler import PollingScheduler
from printstation.store import JsonStore

logger = logging.getLogger(__name__)

# Local statuses that mean a polled job was already picked up
_ALREADY_HANDLED = frozenset({JobStatus.PROCESSING.value, JobStatus.COMPLETED.value})


class PrintStationAgent:
    """Print agent that polls the server for jobs and prints them.

    The agent:
    1. Polls for pending print jobs with adaptive backoff
    2. Merges them into the local job history
    3. Renders each job's HTML to PDF and prints it on the mapped printer
    4. Reports job processing/completion/failure back to the server
    """

    def __init__(
        self,
        store=None,
        events: EventBus | None = None,
        printer: PrinterBackend | None = None,
        renderer: RenderService | None = None,
        api: ApiClient | None = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """Initialize the agent.

        Args:
            store: Key/value store (default: JSON file in ~/.config/printstation).
            events: Event bus for UI consumers.
            printer: Printer backend (default: platform backend).
            renderer: HTML-to-PDF renderer (default: headless Chromium).
            api: Print API client (default: built from the stored config).
            timer_factory: Timer factory for the polling loop.
        """
        self.store = store if store is not None else JsonStore()
        self.events = events or EventBus()
        self.config = get_config(self.store)
        self.printer = printer or get_printer()
        self.renderer = renderer or get_renderer()
        self.api = api or ApiClient(self.config)
        self.history = JobHistory(self.store, self.events)
        self.processor = JobProcessor(
            self.config,
            self.api,
            self.history,
            self.renderer,
            self.printer,
            events=self.events,
        )
        self.scheduler = PollingScheduler(
            self.poll_pending,
            self.handle_jobs,
            events=self.events,
            timer_factory=timer_factory,
        )
        self._stop_requested = threading.Event()

    def _apply_config(self, config: PrintStationConfig) -> None:
        """Copy config values into the shared config object."""
        self.config.client_id = config.client_id
        self.config.api_url = config.api_url
        self.config.api_key = config.api_key
        self.config.token = config.token
        self.config.printer_mappings = dict(config.printer_mappings)
        self.config.log_level = config.log_level

    def configure(self, client_id: str, api_url: str, api_key: str) -> PrintStationConfig:
        """Validate credentials with the server and save the configuration.

        Args:
            client_id: Client identifier.
            api_url: Base URL of the print API.
            api_key: API key.

        Returns:
            PrintStationConfig: The saved configuration.

        Raises:
            AuthenticationError: If the server rejects the credentials.
            ApiError: If the server cannot be reached.
        """
        api_url = api_url.strip().rstrip("/")
        response = self.api.validate(client_id, api_key, api_url=api_url)

        config = PrintStationConfig(
            client_id=client_id,
            api_url=api_url,
            api_key=api_key,
            token=response.get("token") or "",
            printer_mappings=normalize_printer_mappings(response, self.config.printer_mappings),
            log_level=self.config.log_level,
        )
        self._apply_config(config)
        self.config.save(self.store)
        logger.info(f"Configured client {client_id} against {api_url}")
        return self.config

    def update_printer_mappings(self, mappings: dict[str, str]) -> dict[str, str]:
        """Replace the document type -> printer mappings.

        Args:
            mappings: New mappings (empty printer names are dropped).

        Returns:
            dict: Mappings as saved.
        """
        self.config.printer_mappings = {
            str(doc_type): printer for doc_type, printer in mappings.items() if printer
        }
        self.config.save(self.store)
        return dict(self.config.printer_mappings)

    def set_mapping(self, document_type: str, printer_name: str) -> dict[str, str]:
        return self.update_printer_mappings(
            {**self.config.printer_mappings, document_type: printer_name}
        )

    def remove_mapping(self, document_type: str) -> bool:
        if document_type not in self.config.printer_mappings:
            return False
        mappings = dict(self.config.printer_mappings)
        del mappings[document_type]
        self.update_printer_mappings(mappings)
        return True

    def reset(self) -> None:
        """Factory reset: stop polling and clear the configuration."""
        self.stop()
        reset_config(self.store)
        self._apply_config(PrintStationConfig())

    def poll_pending(self) -> list[dict]:
        """Fetch pending jobs for the polling loop.

        Raises:
            NotConfiguredError: If the agent has no credentials.
            ApiError: On transport or HTTP errors.
        """
        if not self.config.is_configured():
            raise NotConfiguredError("Agent not configured, skipping poll")
        return self.api.fetch_pending()

    def handle_jobs(self, jobs: list[dict]) -> int:
        """Record polled jobs and process them one at a time.

        Jobs already processing or completed locally are not printed again.

        Args:
            jobs: Job records from a poll response.

        Returns:
            int: Number of jobs printed.
        """
        previous = {job.get("id"): job.get("status") for job in self.history.get_jobs()}
        self.history.merge_incoming(jobs, keep_statuses=_ALREADY_HANDLED)
        self.events.emit(JOBS_UPDATE, self.history.get_jobs())

        if not jobs:
            logger.debug("No pending jobs")
            return 0

        logger.info(f"{len(jobs)} pending jobs received")

        printed = 0
        for job in jobs:
            if not isinstance(job, dict) or job.get("id") in (None, ""):
                continue

            job_id = str(job["id"])
            if previous.get(job_id) in _ALREADY_HANDLED:
                logger.info(f"Skipping job {job_id}: already {previous[job_id]} locally")
                continue

            record = self.history.get_job(job_id) or {**job, "id": job_id}
            if self.processor.process(record):
                printed += 1

        return printed

    def run_once(self) -> bool:
        """Run a single polling cycle.

        Returns:
            bool: True if the poll succeeded.
        """
        return self.scheduler.run_cycle()

    def retry_job(self, job_id: str) -> threading.Thread | None:
        """Re-run a job from the local history in the background.

        Args:
            job_id: Job id.

        Returns:
            threading.Thread | None: The retry thread, or None if the job is
                not in the local history.
        """
        job = self.history.get_job(job_id)
        if job is None:
            logger.warning(f"Cannot retry job {job_id}: not in local history")
            return None

        def _run():
            try:
                self.processor.process(job)
            except Exception as e:
                logger.exception(f"Retry of job {job_id} failed: {e}")

        logger.info(f"Retrying job {job_id}")
        thread = threading.Thread(target=_run, daemon=True, name=f"printstation-retry-{job_id}")
        thread.start()
        return thread

    def get_jobs(self) -> list[dict]:
        return self.history.get_jobs()

    def get_stats(self) -> dict:
        return self.history.get_stats()

    def start(self) -> None:
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info("Shutdown signal received")
        self._stop_requested.set()

    def run(self) -> None:
        """Run the agent until interrupted.

        Blocks the calling (main) thread while the polling loop runs on
        timer threads.
        """
        if not self.config.is_configured():
            logger.error("Agent not configured. Run 'printstation configure' first.")
            sys.exit(1)

        if not self.printer.is_available:
            logger.error("No printing system available. Is CUPS installed and running?")
            sys.exit(1)

        if not self.renderer.is_available:
            logger.error("Chromium not found. Install chromium or google-chrome and try again.")
            sys.exit(1)

        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGTERM, self._handle_shutdown)

        logger.info("Starting PrintStation agent")
        logger.info(f"Server: {self.config.api_url}")
        logger.info(f"Client: {self.config.client_id}")
        default_printer = self.config.printer_mappings.get(DEFAULT_MAPPING_KEY)
        logger.info(f"Default printer: {default_printer or '(system default)'}")

        self._stop_requested.clear()
        self.start()
        try:
            while not self._stop_requested.wait(0.5):
                pass
        finally:
            self.stop()

        logger.info("Agent stopped")

    def test_connection(self) -> dict:
        """Test connection to server and printer.

        Returns:
            dict: Test results with 'server', 'printer', 'renderer', 'success' keys.
        """
        results = {
            "server": {"status": "unknown", "message": ""},
            "printer": {"status": "unknown", "message": ""},
            "renderer": {"status": "unknown", "message": ""},
            "success": False,
        }

        # Test server connection
        try:
            self.api.validate(self.config.client_id, self.config.api_key)
            results["server"] = {"status": "ok", "message": "Connected to server"}
        except ApiError as e:
            results["server"] = {"status": "error", "message": str(e)}

        # Test printer
        if self.printer.is_available:
            printers = self.printer.get_printers()
            if printers:
                default = self.printer.get_default_printer()
                results["printer"] = {
                    "status": "ok",
                    "message": f"Default printer: {default or '(none)'}",
                    "printers": [p["name"] for p in printers],
                }
            else:
                results["printer"] = {"status": "warning", "message": "No printers found"}
        else:
            results["printer"] = {"status": "error", "message": "Printing system not available"}

        # Test renderer
        if self.renderer.is_available:
            results["renderer"] = {"status": "ok", "message": "Chromium found"}
        else:
            results["renderer"] = {"status": "error", "message": "Chromium not found"}

        results["success"] = (
            results["server"]["status"] == "ok"
            and results["printer"]["status"] in ("ok", "warning")
            and results["renderer"]["status"] == "ok"
        )

        return results


def get_agent(store=None) -> PrintStationAgent:
    """Factory function for PrintStationAgent.

    Args:
        store: Optional key/value store.

    Returns:
        PrintStationAgent: Agent instance.
    """
    return PrintStationAgent(store)
