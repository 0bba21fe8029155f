"""Composition root — builds and wires every engine component.

There are no module-level singletons for engine state: ``build_runtime``
creates one ``Runtime`` and the FastAPI app keeps it on ``app.state``.
Collaborators (gateway, snapshot store, blob store, encoder) can be passed
in, which is how tests swap in fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from matrixgen.config import Settings, get_settings
from matrixgen.schemas.settings import GenerationSettings, GenerationSettingsUpdate
from matrixgen.services.actor_pipeline import ActorRegistrationService
from matrixgen.services.blob_store import BlobStore, CatboxBlobStore
from matrixgen.services.gateway import Gateway, HttpGateway
from matrixgen.services.job_queue import JobQueue
from matrixgen.services.job_snapshot import (
    InMemoryJobSnapshotStore,
    JobSnapshotStore,
    JobSnapshotWriter,
    RedisJobSnapshotStore,
)
from matrixgen.services.media_encoder import MediaEncoder
from matrixgen.services.plugin_loader import PluginLoader
from matrixgen.services.providers import builtin_adapters
from matrixgen.services.registry import ProviderRegistry
from matrixgen.services.scheduler import Scheduler
from matrixgen.services.session import GenerationSession

logger = logging.getLogger(__name__)


class SettingsStore:
    """Holds the live ``GenerationSettings``; updates replace the whole value."""

    def __init__(self, initial: GenerationSettings) -> None:
        self._current = initial

    def get(self) -> GenerationSettings:
        return self._current

    def update(self, changes: GenerationSettingsUpdate) -> GenerationSettings:
        merged = self._current.model_dump()
        merged.update(changes.model_dump(exclude_unset=True))
        # Re-validate the merged value so bounds hold for the combination
        self._current = GenerationSettings.model_validate(merged)
        logger.info("Generation settings updated: %s", sorted(changes.model_fields_set))
        return self._current


@dataclass
class Runtime:
    settings: Settings
    settings_store: SettingsStore
    registry: ProviderRegistry
    gateway: Gateway
    queue: JobQueue
    session: GenerationSession
    scheduler: Scheduler
    snapshot_store: JobSnapshotStore
    snapshot_writer: JobSnapshotWriter
    encoder: MediaEncoder
    blob_store: BlobStore
    actors: ActorRegistrationService

    async def start(self, *, run_scheduler: bool = True) -> None:
        self.registry.reload()
        await self.snapshot_writer.restore()
        self.snapshot_writer.start()
        if run_scheduler:
            self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.snapshot_writer.stop()
        for resource in (self.gateway, self.blob_store, self.snapshot_store):
            aclose = getattr(resource, "aclose", None)
            if aclose is not None:
                await aclose()


def _snapshot_store_for(settings: Settings) -> JobSnapshotStore:
    if settings.SNAPSHOT_BACKEND == "redis":
        logger.info("Job snapshots in Redis key %s", settings.JOB_SNAPSHOT_KEY)
        return RedisJobSnapshotStore(settings.REDIS_URL, settings.JOB_SNAPSHOT_KEY)
    return InMemoryJobSnapshotStore()


def build_runtime(
    settings: Settings | None = None,
    *,
    gateway: Gateway | None = None,
    snapshot_store: JobSnapshotStore | None = None,
    blob_store: BlobStore | None = None,
    encoder: MediaEncoder | None = None,
) -> Runtime:
    settings = settings or get_settings()

    settings_store = SettingsStore(GenerationSettings.from_app_settings(settings))
    registry = ProviderRegistry(builtin_adapters(), PluginLoader(settings.PLUGINS_DIR))
    gateway = gateway or HttpGateway(
        timeout=settings.GATEWAY_TIMEOUT,
        connect_timeout=settings.GATEWAY_CONNECT_TIMEOUT,
    )
    queue = JobQueue(snapshot_limit=settings.JOB_SNAPSHOT_LIMIT)
    session = GenerationSession(
        registry,
        gateway,
        queue,
        poll_interval=settings.POLL_INTERVAL_SECONDS,
        max_attempts_image=settings.POLL_MAX_ATTEMPTS_IMAGE,
        max_attempts_video=settings.POLL_MAX_ATTEMPTS_VIDEO,
    )
    scheduler = Scheduler(
        queue, session, settings_store.get, tick_seconds=settings.SCHEDULER_TICK_SECONDS,
    )
    snapshot_store = snapshot_store or _snapshot_store_for(settings)
    encoder = encoder or MediaEncoder(settings.FFMPEG_BINARY, settings.FFMPEG_TIMEOUT)
    blob_store = blob_store or CatboxBlobStore(
        settings.BLOB_UPLOAD_URL, timeout=settings.BLOB_UPLOAD_TIMEOUT,
    )
    actors = ActorRegistrationService(
        registry, gateway, encoder, blob_store, clip_seconds=settings.ACTOR_CLIP_SECONDS,
    )

    return Runtime(
        settings=settings,
        settings_store=settings_store,
        registry=registry,
        gateway=gateway,
        queue=queue,
        session=session,
        scheduler=scheduler,
        snapshot_store=snapshot_store,
        snapshot_writer=JobSnapshotWriter(queue, snapshot_store),
        encoder=encoder,
        blob_store=blob_store,
        actors=actors,
    )
