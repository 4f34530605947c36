"""
Controller manager.

Runs the watch threads that keep the ObjectCache current and the asyncio
workers that drain each controller's queue.

    watch thread (per kind)          event loop
    list + watch API server   --->   WorkQueue  --->  worker(s)
    update ObjectCache                                 asyncio.to_thread(reconcile)

Reconciles are blocking calls against the API server and the grid and run in
the default thread pool. Workers start once every watched kind has been
listed into the cache. Failed requests are retried with per-request backoff,
except ConfigurationErrors which wait for the next change of the objects
involved.
"""

from __future__ import annotations

import asyncio
import signal
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from infoblox_ipam.config import config
from infoblox_ipam.exceptions import ConfigurationError
from infoblox_ipam.kube.cache import ObjectCache
from infoblox_ipam.kube.client import KubernetesObjectClient
from infoblox_ipam.models.resources import KubeObject
from infoblox_ipam.runtime.queue import (
    ExponentialRateLimiter,
    Request,
    Result,
    WorkQueue,
)
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

ReconcileFunc = Callable[[Request], Result]

# Maps a watched object (wire dict) to the requests it triggers
EventMapper = Callable[[dict[str, Any]], list[Request]]

WATCH_RETRY_SECONDS = 5.0
SYNC_POLL_SECONDS = 0.5


# =============================================================================
# Controller
# =============================================================================


class Controller:
    """
    A named queue plus the workers reconciling its requests.

    Args:
        name: Name used in log messages.
        reconcile: Blocking reconcile function.
        workers: Number of concurrent reconciles.
    """

    def __init__(self, name: str, reconcile: ReconcileFunc, workers: int = 1):
        self.name = name
        self.reconcile = reconcile
        self.workers = workers
        self.queue = WorkQueue(
            ExponentialRateLimiter(
                config.BACKOFF_BASE_SECONDS, config.BACKOFF_MAX_SECONDS
            )
        )

    async def process_next(self) -> bool:
        """Reconcile one request; returns False once the queue is shut down."""
        request = await self.queue.get()
        if request is None:
            return False

        try:
            result = await asyncio.to_thread(self.reconcile, request)
        except ConfigurationError as e:
            logger.error(f"[{self.name}] {request.key}: {e}")
            self.queue.forget(request)
        except Exception as e:
            retries = self.queue.rate_limiter.num_requeues(request)
            logger.exception(
                f"[{self.name}] Reconcile of {request.key} failed "
                f"(retry {retries + 1}): {e}"
            )
            self.queue.add_rate_limited(request)
        else:
            self.queue.forget(request)
            if result is not None and result.requeue_after:
                self.queue.add_after(request, result.requeue_after)
        finally:
            self.queue.done(request)
        return True

    async def run_worker(self, index: int) -> None:
        logger.debug(f"[{self.name}] Worker {index} started")
        while await self.process_next():
            pass
        logger.debug(f"[{self.name}] Worker {index} stopped")


# =============================================================================
# Manager
# =============================================================================


@dataclass
class _Watch:
    resource: type[KubeObject]
    targets: list[tuple[Controller, EventMapper]] = field(default_factory=list)
    # Set once the first list has been loaded into the cache
    synced: threading.Event = field(default_factory=threading.Event)


class Manager:
    """
    Owns the object cache, the watches and the controllers.

    Args:
        kube: API server client used for list/watch.
        cache: Cache updated from watch events.
        namespace: Namespace to watch; empty watches all namespaces.
    """

    def __init__(
        self,
        kube: KubernetesObjectClient,
        cache: ObjectCache,
        namespace: str = "",
    ):
        self.kube = kube
        self.cache = cache
        self.namespace = namespace or None
        self.controllers: list[Controller] = []
        self._watches: dict[type[KubeObject], _Watch] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stopping = threading.Event()
        self._stopped: asyncio.Event | None = None

    def add_controller(self, controller: Controller) -> Controller:
        self.controllers.append(controller)
        return controller

    def watch(
        self,
        resource: type[KubeObject],
        controller: Controller | None = None,
        mapper: EventMapper | None = None,
    ) -> None:
        """
        Watch a kind; with a controller, map its events to that controller.

        A kind watched without a controller only feeds the cache.
        """
        entry = self._watches.setdefault(resource, _Watch(resource))
        if controller is not None and mapper is not None:
            entry.targets.append((controller, mapper))

    # -------------------------------------------------------------------------
    # Event Handling (watch threads)
    # -------------------------------------------------------------------------

    def _dispatch(self, watch: _Watch, obj: dict[str, Any]) -> None:
        for controller, mapper in watch.targets:
            try:
                requests = mapper(obj)
            except Exception as e:
                logger.error(f"[{controller.name}] Failed to map event: {e}")
                continue
            for request in requests:
                controller.queue.add_threadsafe(self._loop, request)

    def _handle_event(self, watch: _Watch, event_type: str, obj: dict[str, Any]) -> None:
        if event_type == "DELETED":
            self.cache.remove(obj)
        elif event_type in ("ADDED", "MODIFIED"):
            self.cache.upsert(obj)
        else:
            # BOOKMARK and ERROR carry no object of interest
            return
        self._dispatch(watch, obj)

    def _run_watch(self, watch: _Watch) -> None:
        api_version = watch.resource.API_VERSION
        kind = watch.resource.KIND
        namespace = self.namespace if watch.resource.NAMESPACED else None

        while not self._stopping.is_set():
            try:
                items = self.kube.list_raw(api_version, kind, namespace)
                self.cache.replace_all(api_version, kind, items)
                watch.synced.set()
                for item in items:
                    self._dispatch(watch, item)
                logger.debug(f"Synced {len(items)} {kind} objects")

                for event_type, obj in self.kube.watch_raw(
                    api_version,
                    kind,
                    namespace,
                    timeout_seconds=config.WATCH_TIMEOUT_SECONDS,
                ):
                    if self._stopping.is_set():
                        return
                    self._handle_event(watch, event_type, obj)
            except Exception as e:
                logger.error(f"Watch on {kind} failed: {e}")
                self._stopping.wait(WATCH_RETRY_SECONDS)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def wait_for_sync(self) -> bool:
        """
        Block until every watched kind has been listed once.

        Returns False if the manager is stopped first.
        """
        for watch in self._watches.values():
            while not watch.synced.wait(SYNC_POLL_SECONDS):
                if self._stopping.is_set():
                    return False
        return True

    def stop(self) -> None:
        logger.info("Stopping controller manager")
        self._stopping.set()
        for controller in self.controllers:
            controller.queue.shutdown()
        if self._stopped is not None:
            self._stopped.set()

    async def start(self) -> None:
        """Run until ``stop`` is called (or SIGINT/SIGTERM arrives)."""
        self._loop = asyncio.get_running_loop()
        self._stopped = asyncio.Event()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                # Not available off the main thread or on some platforms
                pass

        for watch in self._watches.values():
            thread = threading.Thread(
                target=self._run_watch,
                args=(watch,),
                name=f"watch-{watch.resource.KIND}",
                daemon=True,
            )
            thread.start()
            logger.info(f"Watching {watch.resource.KIND}")

        # Workers only start once every watched kind is in the cache
        if not await asyncio.to_thread(self.wait_for_sync):
            logger.info("Controller manager stopped before caches synced")
            return
        logger.info("Caches synced")

        workers = [
            asyncio.create_task(controller.run_worker(i))
            for controller in self.controllers
            for i in range(controller.workers)
        ]
        logger.info(
            f"Started {len(self.controllers)} controller(s) with "
            f"{len(workers)} worker(s)"
        )

        await self._stopped.wait()
        await asyncio.gather(*workers, return_exceptions=True)
        logger.info("Controller manager stopped")
