"""
Keyed registry of WAPI clients.

One client per InfobloxInstance, reused across reconciles. A client is
rebuilt when the instance's host or credential fingerprint changes, and can
be dropped explicitly with ``invalidate``.
"""

from __future__ import annotations

import threading
from typing import Callable

from infoblox_ipam.infoblox.client import InfobloxClient, InfobloxConfig, new_client
from infoblox_ipam.utils.logger import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[[InfobloxConfig], InfobloxClient]


class ClientManager:
    """Creates, caches and evicts clients keyed by instance name."""

    def __init__(self, factory: ClientFactory = new_client):
        self._factory = factory
        self._lock = threading.Lock()
        self._clients: dict[str, tuple[str, InfobloxClient]] = {}

    def get_or_create(self, instance: str, config: InfobloxConfig) -> InfobloxClient:
        fingerprint = config.fingerprint()
        with self._lock:
            cached = self._clients.get(instance)
            if cached is not None:
                cached_fingerprint, client = cached
                if cached_fingerprint == fingerprint:
                    return client
                logger.info(f"Configuration of instance {instance} changed, reconnecting")
                client.close()

            client = self._factory(config)
            self._clients[instance] = (fingerprint, client)
            return client

    def get(self, instance: str) -> InfobloxClient | None:
        with self._lock:
            cached = self._clients.get(instance)
            return cached[1] if cached else None

    def invalidate(self, instance: str) -> None:
        with self._lock:
            cached = self._clients.pop(instance, None)
        if cached is not None:
            logger.debug(f"Dropped client for instance {instance}")
            cached[1].close()

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for _, client in clients:
            client.close()
