"""
Deferred task coordination.

One-shot tasks run when connectivity comes back and flush a payload that
was staged in the sync namespace. Periodic tasks refresh a well-known
API cache entry. Every task is isolated: its failure is logged and
reported as an outcome, never raised to the trigger.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence

from .cache.core import CacheGeneration, CacheRecord, request_key
from .cache.store import NamespaceRegistry
from .exceptions import NetworkError, StorageError
from .fetch import Request, Response, Transport
from .notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger("engine.tasks")


class TaskKind(Enum):
    ONE_SHOT = "one_shot"   # Background sync, fired on connectivity restore
    PERIODIC = "periodic"   # Periodic sync, fired on a platform schedule


class TaskOutcome(Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"     # Nothing to do (no staged payload)
    FAILED = "failed"       # Left for the next trigger
    UNKNOWN = "unknown"     # Tag not recognized


@dataclass(frozen=True)
class SyncJob:
    """A one-shot upload of a staged payload."""
    tag: str
    staged_key: str
    endpoint: str
    confirmation_title: str
    confirmation_body: str


@dataclass(frozen=True)
class PeriodicJob:
    """A periodic refresh of one API cache entry."""
    tag: str
    source_url: str
    cache_key: str


@dataclass(frozen=True)
class DeferredTask:
    """
    One trigger invocation. Never persisted.

    payload_ref is the key of the staged payload (one-shot) or of the
    refreshed cache entry (periodic); None means the job's default key.
    """
    tag: str
    kind: TaskKind
    payload_ref: Optional[str] = None


SYNC_JOBS = (
    SyncJob(
        tag="sync-notes",
        staged_key="/api/notes/sync",
        endpoint="/api/notes/sync",
        confirmation_title="Notes Synced",
        confirmation_body="Your notes have been synced successfully",
    ),
    SyncJob(
        tag="sync-reminders",
        staged_key="/api/reminders/sync",
        endpoint="/api/reminders/sync",
        confirmation_title="Reminders Synced",
        confirmation_body="Your reminders have been synced successfully",
    ),
)

PERIODIC_JOBS = (
    PeriodicJob(tag="update-weather", source_url="/api/weather/locations", cache_key="/api/weather"),
    PeriodicJob(tag="update-ai-models", source_url="/api/ai/models", cache_key="/api/ai/models"),
)


class DeferredTaskCoordinator:
    """Runs sync and periodic-sync tasks by tag."""

    def __init__(
        self,
        registry: NamespaceRegistry,
        transport: Transport,
        generation: CacheGeneration,
        dispatcher: NotificationDispatcher,
        origin: str,
        sync_jobs: Sequence[SyncJob] = SYNC_JOBS,
        periodic_jobs: Sequence[PeriodicJob] = PERIODIC_JOBS,
    ):
        self._registry = registry
        self._transport = transport
        self._dispatcher = dispatcher
        self.generation = generation
        self.origin = origin
        self.sync_jobs: Dict[str, SyncJob] = {job.tag: job for job in sync_jobs}
        self.periodic_jobs: Dict[str, PeriodicJob] = {job.tag: job for job in periodic_jobs}

    def task_for(self, tag: str, kind: TaskKind) -> Optional[DeferredTask]:
        if kind is TaskKind.ONE_SHOT and tag in self.sync_jobs:
            return DeferredTask(tag, kind, self.sync_jobs[tag].staged_key)
        if kind is TaskKind.PERIODIC and tag in self.periodic_jobs:
            return DeferredTask(tag, kind, self.periodic_jobs[tag].cache_key)
        return None

    def run_sync(self, tag: str) -> TaskOutcome:
        return self._run_tag(tag, TaskKind.ONE_SHOT)

    def run_periodic(self, tag: str) -> TaskOutcome:
        return self._run_tag(tag, TaskKind.PERIODIC)

    def run_all(self, tasks: Iterable[DeferredTask]) -> Dict[str, TaskOutcome]:
        """Run several tasks; one failing does not stop the rest."""
        return {task.tag: self.run(task) for task in tasks}

    def _run_tag(self, tag: str, kind: TaskKind) -> TaskOutcome:
        task = self.task_for(tag, kind)
        if task is None:
            logger.info(f"Ignoring unknown {kind.value} tag: {tag}")
            return TaskOutcome.UNKNOWN
        return self.run(task)

    def run(self, task: DeferredTask) -> TaskOutcome:
        logger.info(f"Background sync: {task.tag} ({task.kind.value})")
        try:
            if task.kind is TaskKind.ONE_SHOT:
                job = self.sync_jobs[task.tag]
                return self._flush_staged(job, task.payload_ref or job.staged_key)
            job = self.periodic_jobs[task.tag]
            return self._refresh(job, task.payload_ref or job.cache_key)
        except Exception as e:
            logger.warning(f"Sync error: {task.tag} - {e}", exc_info=True)
            return TaskOutcome.FAILED

    # ------------------------------------------------------------------
    # One-shot sync
    # ------------------------------------------------------------------

    def stage(self, tag: str, payload: Any) -> str:
        """
        Stage a JSON payload for a one-shot sync tag.

        Replaces any payload already staged for the tag.

        Returns:
            The cache key the payload was stored under

        Raises:
            ValueError: if the tag is not a known sync job
        """
        job = self.sync_jobs.get(tag)
        if job is None:
            raise ValueError(f"Unknown sync tag: {tag}")
        key = request_key(job.staged_key, self.origin)
        record = CacheRecord.from_response(Response.from_json(payload))
        self._registry.open(self.generation.sync).put(key, record)
        logger.info(f"Staged payload for {tag}: {key}")
        return key

    def _flush_staged(self, job: SyncJob, staged_ref: str) -> TaskOutcome:
        key = request_key(staged_ref, self.origin)
        staged = self._registry.get(self.generation.sync, key)
        if staged is None:
            logger.debug(f"Nothing staged for {job.tag}")
            return TaskOutcome.SKIPPED

        try:
            response = self._transport.fetch(Request(
                url=request_key(job.endpoint, self.origin),
                method="POST",
                headers={"Content-Type": "application/json"},
                body=staged.body,
            ))
        except NetworkError as e:
            logger.warning(f"Sync upload failed for {job.tag}, will retry: {e}")
            return TaskOutcome.FAILED

        if not response.ok:
            logger.warning(f"Sync upload rejected for {job.tag}: HTTP {response.status}")
            return TaskOutcome.FAILED

        try:
            self._registry.delete(self.generation.sync, key)
        except StorageError as e:
            # Upload already succeeded
            logger.warning(f"Could not clear staged payload for {job.tag}: {e}")
        self._dispatcher.show(job.confirmation_title, job.confirmation_body)
        logger.info(f"Synced {job.tag}")
        return TaskOutcome.COMPLETED

    # ------------------------------------------------------------------
    # Periodic refresh
    # ------------------------------------------------------------------

    def _refresh(self, job: PeriodicJob, cache_ref: str) -> TaskOutcome:
        try:
            response = self._transport.fetch(Request(url=request_key(job.source_url, self.origin)))
        except NetworkError as e:
            logger.warning(f"Periodic update failed for {job.tag}: {e}")
            return TaskOutcome.FAILED

        if not response.ok:
            logger.warning(f"Periodic update failed for {job.tag}: HTTP {response.status}")
            return TaskOutcome.FAILED

        try:
            data = response.json()
        except ValueError as e:
            logger.warning(f"Periodic update for {job.tag} returned invalid JSON: {e}")
            return TaskOutcome.FAILED

        record = CacheRecord.from_response(Response.from_json(data))
        self._registry.put(self.generation.api, request_key(cache_ref, self.origin), record)
        logger.info(f"Refreshed {cache_ref} for {job.tag}")
        return TaskOutcome.COMPLETED
