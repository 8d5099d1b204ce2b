import threading
import uuid
import weakref
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from .config import FETCH_WORKERS, JOB_HISTORY_SIZE, REPORT_CACHE_SIZE
from .context import FilterState, ReportContext
from .logging import get_logger
from .models import Office, ReportData
from .report_presets import build_context

logger = get_logger(__name__)

IDLE = "idle"
LOADING = "loading"
ERROR = "error"

REPORT_ERROR_MESSAGE = "Failed to load report data"
OFFICE_ERROR_MESSAGE = "Failed to load office data"

ReportFetch = Callable[[FilterState], ReportData]
OfficeFetch = Callable[[], List[Office]]


@dataclass
class ReportJob:
    id: str
    generation: int
    context: ReportContext
    status: str = "queued"
    error: Optional[str] = None
    future: Optional[Future] = field(default=None, repr=False)


@dataclass
class ReportStore:
    """What the page renders. Only ReportFetcher writes it."""

    filters: Optional[FilterState] = None
    report: Optional[ReportData] = None
    status: str = IDLE
    error: Optional[str] = None
    offices: List[Office] = field(default_factory=list)
    office_error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status == LOADING


class ReportFetcher:
    """
    Issues one report fetch per filter change on a small thread pool.

    Every job carries a generation number and the filters it was built
    from; a job that finishes after a newer request was made is dropped,
    so a slow answer for old filters never replaces the current report.
    Failures leave the last good report in place and set an error message.

    Only the most recent ``job_history`` jobs stay looked-up by id, and the
    result cache keeps the ``cache_size`` most recently used payloads.
    """

    def __init__(
        self,
        fetch: ReportFetch,
        max_workers: int = FETCH_WORKERS,
        on_time_threshold_hours: Optional[float] = None,
        cache_size: int = REPORT_CACHE_SIZE,
        job_history: int = JOB_HISTORY_SIZE,
    ):
        self.fetch = fetch
        self.on_time_threshold_hours = on_time_threshold_hours
        self.cache_size = max(1, cache_size)
        self.job_history = max(1, job_history)
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="report")
        self.store = ReportStore()
        self.jobs: "OrderedDict[str, ReportJob]" = OrderedDict()
        self.cache: "OrderedDict[str, ReportData]" = OrderedDict()
        self.generation = 0
        self.current: Optional[ReportJob] = None
        self.lock = threading.Lock()
        # Sessions end without a hook; release the pool with the fetcher.
        self._finalizer = weakref.finalize(self, self.executor.shutdown, wait=False)

    def _remember_job(self, job: ReportJob) -> None:
        self.jobs[job.id] = job
        while len(self.jobs) > self.job_history:
            self.jobs.popitem(last=False)

    def _cached(self, key: str) -> Optional[ReportData]:
        report = self.cache.get(key)
        if report is not None:
            self.cache.move_to_end(key)
        return report

    def _store_cached(self, key: str, report: ReportData) -> None:
        self.cache[key] = report
        self.cache.move_to_end(key)
        while len(self.cache) > self.cache_size:
            self.cache.popitem(last=False)

    def request(self, filters: FilterState, use_cache: bool = True) -> Optional[ReportJob]:
        """
        Make ``filters`` the live request. Returns None without touching the
        store when the date range is incomplete.
        """
        if not filters.date_range.is_complete:
            logger.debug("report_fetch_skipped", reason="incomplete_date_range")
            return None

        ctx = build_context(filters, self.on_time_threshold_hours)
        with self.lock:
            self.generation += 1
            job = ReportJob(id=uuid.uuid4().hex[:12], generation=self.generation, context=ctx)
            self._remember_job(job)
            self.store.filters = filters
            self.current = job
            self.store.error = None

            cached = self._cached(ctx.cache_key()) if use_cache else None
            if cached is not None:
                self.store.report = cached
                self.store.status = IDLE
                job.status = "completed"
                job.future = Future()
                job.future.set_result(None)
                logger.info("report_served_from_cache", job_id=job.id, report_type=ctx.report_type)
                return job

            self.store.status = LOADING
            job.future = self.executor.submit(self._run_job, job)
        return job

    def retry(self) -> Optional[ReportJob]:
        """Re-issue the current request, skipping the cache."""
        with self.lock:
            filters = self.store.filters
        if filters is None:
            return None
        return self.request(filters, use_cache=False)

    def _run_job(self, job: ReportJob) -> None:
        with self.lock:
            job.status = "running"
        filters = job.context.filters
        logger.info(
            "report_fetch_started",
            job_id=job.id,
            generation=job.generation,
            report_type=filters.report_type,
            query=filters.to_query_string(),
        )
        try:
            report = self.fetch(filters)
        except Exception as exc:
            self._fail(job, exc)
            return
        self._commit(job, report)

    def _commit(self, job: ReportJob, report: ReportData) -> None:
        with self.lock:
            self._store_cached(job.context.cache_key(), report)
            if job.generation != self.generation:
                job.status = "superseded"
                logger.info("report_fetch_superseded", job_id=job.id, generation=job.generation,
                            current_generation=self.generation)
                return
            job.status = "completed"
            self.store.report = report
            self.store.status = IDLE
            self.store.error = None
        logger.info("report_fetch_completed", job_id=job.id, generation=job.generation)

    def _fail(self, job: ReportJob, exc: Exception) -> None:
        with self.lock:
            job.error = str(exc)
            if job.generation != self.generation:
                job.status = "superseded"
                logger.info("report_fetch_superseded", job_id=job.id, generation=job.generation,
                            error=str(exc))
                return
            job.status = "failed"
            self.store.status = ERROR
            self.store.error = REPORT_ERROR_MESSAGE
        logger.warning("report_fetch_failed", job_id=job.id, error=str(exc), exc_type=type(exc).__name__)

    def load_offices(self, list_offices: OfficeFetch) -> Future:
        """Fetch the office directory once; failures only set ``office_error``."""
        return self.executor.submit(self._run_offices, list_offices)

    def _run_offices(self, list_offices: OfficeFetch) -> None:
        try:
            offices = list(list_offices())
        except Exception as exc:
            logger.warning("offices_load_failed", error=str(exc), exc_type=type(exc).__name__)
            with self.lock:
                self.store.office_error = OFFICE_ERROR_MESSAGE
            return
        with self.lock:
            self.store.offices = offices
            self.store.office_error = None
        logger.info("offices_loaded", count=len(offices))

    def wait(self, timeout: Optional[float] = None) -> ReportStore:
        """Block until the live job finishes (or ``timeout`` passes) and return the store."""
        with self.lock:
            job = self.current
        if job is not None and job.future is not None:
            wait([job.future], timeout=timeout)
        return self.snapshot()

    def snapshot(self) -> ReportStore:
        with self.lock:
            return replace(self.store, offices=list(self.store.offices))

    def get(self, job_id: str) -> Optional[ReportJob]:
        with self.lock:
            return self.jobs.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._finalizer.detach()
        self.executor.shutdown(wait=wait)
