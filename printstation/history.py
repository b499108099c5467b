"""Local job history and aggregate statistics."""

import enum
import logging
import threading

from printstation.events import STATS_UPDATE, EventBus

logger = logging.getLogger(__name__)

# Store keys
JOBS_KEY = "jobs"
STATS_KEY = "stats"

# Most recent jobs kept locally
MAX_HISTORY = 50


class JobStatus(str, enum.Enum):
    """Print job status enumeration."""

    PENDING = "pending"  # Reported by the server, not yet picked up
    PROCESSING = "processing"  # Being rendered or printed
    COMPLETED = "completed"  # Successfully printed
    FAILED = "failed"  # Render or print failed


def compute_stats(jobs: list[dict]) -> dict:
    """Count jobs by status.

    Jobs with an unrecognized status are not counted.

    Args:
        jobs: Job records.

    Returns:
        dict: Job counts keyed by status value.
    """
    stats = {status.value: 0 for status in JobStatus}
    for job in jobs:
        status = job.get("status")
        if isinstance(status, JobStatus):
            status = status.value
        if status in stats:
            stats[status] += 1
    return stats


class JobHistory:
    """Bounded, newest-first job history kept in the local store.

    Every change rewrites the job list and the derived stats so that the
    stored stats never drift from the stored jobs.
    """

    def __init__(self, store, events: EventBus | None = None, max_size: int = MAX_HISTORY):
        """Initialize the history.

        Args:
            store: Key/value store holding jobs and stats.
            events: Event bus notified on stats changes.
            max_size: Maximum number of jobs kept.
        """
        self.store = store
        self.events = events or EventBus()
        self.max_size = max_size
        self._lock = threading.RLock()

    def get_jobs(self) -> list[dict]:
        return self.store.get(JOBS_KEY) or []

    def get_job(self, job_id: str) -> dict | None:
        for job in self.get_jobs():
            if job.get("id") == job_id:
                return job
        return None

    def get_stats(self) -> dict:
        return self.store.get(STATS_KEY) or compute_stats(self.get_jobs())

    def merge_incoming(
        self, new_jobs: list[dict], keep_statuses: frozenset[str] = frozenset()
    ) -> list[str]:
        """Merge jobs reported by the server into the local history.

        Unseen jobs are prepended; known jobs get the incoming fields merged
        over the stored record. The history is then truncated to the most
        recent entries.

        Args:
            new_jobs: Job records from a poll response.
            keep_statuses: Local statuses the incoming status may not
                overwrite (a job printed here stays completed even if the
                server still lists it as pending).

        Returns:
            list[str]: Ids of jobs seen for the first time.
        """
        if not new_jobs:
            return []

        with self._lock:
            jobs = self.get_jobs()
            index = {job.get("id"): position for position, job in enumerate(jobs)}
            first_seen = []

            for incoming in new_jobs:
                if not isinstance(incoming, dict) or incoming.get("id") in (None, ""):
                    logger.warning(f"Ignoring job record without id: {incoming!r}")
                    continue

                job_id = str(incoming["id"])
                incoming = {**incoming, "id": job_id}

                if job_id in index:
                    position = index[job_id]
                    current = jobs[position]
                    merged = {**current, **incoming}
                    if current.get("status") in keep_statuses:
                        merged["status"] = current["status"]
                    jobs[position] = merged
                else:
                    incoming.setdefault("status", JobStatus.PENDING.value)
                    jobs.insert(0, incoming)
                    index = {job.get("id"): position for position, job in enumerate(jobs)}
                    first_seen.append(job_id)

            if len(jobs) > self.max_size:
                evicted = len(jobs) - self.max_size
                jobs = jobs[: self.max_size]
                logger.debug(f"Evicted {evicted} old jobs from history")

            self._save(jobs)

        return first_seen

    def set_status(
        self,
        job_id: str,
        status: JobStatus | str,
        error_message: str | None = None,
        printer: str | None = None,
    ) -> bool:
        """Update the local status of a job.

        Args:
            job_id: Job id.
            status: New status.
            error_message: Error to record (kept unchanged when None). A
                completed job drops any earlier error.
            printer: Printer used (kept unchanged when None).

        Returns:
            bool: False if the job is not in the local history.
        """
        status = JobStatus(status).value

        with self._lock:
            jobs = self.get_jobs()
            for job in jobs:
                if job.get("id") == job_id:
                    job["status"] = status
                    if error_message is not None:
                        job["error_message"] = error_message
                    elif status == JobStatus.COMPLETED.value:
                        job.pop("error_message", None)
                    if printer is not None:
                        job["printer"] = printer
                    self._save(jobs)
                    return True

        logger.debug(f"Job {job_id} not in local history, status {status} not recorded")
        return False

    def clear(self) -> None:
        with self._lock:
            self._save([])

    def _save(self, jobs: list[dict]) -> None:
        stats = compute_stats(jobs)
        self.store.set(JOBS_KEY, jobs)
        self.store.set(STATS_KEY, stats)
        self.events.emit(STATS_UPDATE, stats)
