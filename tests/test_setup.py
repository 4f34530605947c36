import asyncio

import pytest

from infoblox_ipam.controllers.setup import setup_with_manager
from infoblox_ipam.kube.cache import ObjectCache
from infoblox_ipam.kube.meta import CLUSTER_NAME_LABEL, WATCH_FILTER_LABEL
from infoblox_ipam.models.resources import (
    Cluster,
    InfobloxIPPool,
    IPAddress,
    IPAddressClaim,
)
from infoblox_ipam.runtime.manager import Manager
from infoblox_ipam.runtime.queue import Request

from tests.factories import NAMESPACE, OPERATOR_NAMESPACE, make_claim, make_cluster, make_pool


def drain(queue):
    requests = []
    while len(queue):
        requests.append(queue._queue.popleft())
    return requests


@pytest.fixture
def wiring(kube, clients):
    def build(watch_filter=""):
        manager = Manager(kube, ObjectCache(), NAMESPACE)
        claims, pools = setup_with_manager(
            manager, clients, OPERATOR_NAMESPACE, watch_filter
        )
        return manager, claims, pools

    return build


def deliver(manager, resource, obj, event_type="ADDED"):
    """Feed one watch event and let the queued adds run."""

    async def scenario():
        manager._loop = asyncio.get_running_loop()
        manager._handle_event(manager._watches[resource], event_type, obj)
        await asyncio.sleep(0)

    asyncio.run(scenario())


class TestEventMapping:
    def test_claim_event_queues_claim_and_pool(self, wiring):
        manager, claims, pools = wiring()

        deliver(manager, IPAddressClaim, make_claim().to_dict())

        assert drain(claims.queue) == [Request("test", NAMESPACE)]
        assert drain(pools.queue) == [Request("pool", NAMESPACE)]
        assert manager.cache.get(IPAddressClaim, "test", NAMESPACE) is not None

    def test_claims_of_other_providers_are_ignored(self, wiring):
        manager, claims, pools = wiring()

        deliver(manager, IPAddressClaim, make_claim(pool_kind="InClusterIPPool").to_dict())

        assert len(claims.queue) == 0
        assert len(pools.queue) == 0

    def test_watch_filter(self, wiring):
        manager, claims, _ = wiring(watch_filter="team-a")

        deliver(manager, IPAddressClaim, make_claim(name="unlabeled").to_dict())
        deliver(
            manager,
            IPAddressClaim,
            make_claim(name="labeled", labels={WATCH_FILTER_LABEL: "team-a"}).to_dict(),
        )

        assert drain(claims.queue) == [Request("labeled", NAMESPACE)]

    def test_address_event_queues_its_claim(self, wiring):
        manager, claims, _ = wiring()
        address = IPAddress.model_validate(
            {
                "metadata": {
                    "name": "test",
                    "namespace": NAMESPACE,
                    "ownerReferences": [
                        {
                            "apiVersion": IPAddressClaim.API_VERSION,
                            "kind": "IPAddressClaim",
                            "name": "owner-claim",
                            "uid": "1",
                            "controller": True,
                        }
                    ],
                },
                "spec": {"poolRef": make_claim().spec.pool_ref.to_dict()},
            }
        )

        deliver(manager, IPAddress, address.to_dict(), "DELETED")

        assert drain(claims.queue) == [Request("owner-claim", NAMESPACE)]

    def test_pool_event(self, wiring):
        manager, _, pools = wiring()

        deliver(manager, InfobloxIPPool, make_pool().to_dict(), "MODIFIED")

        assert drain(pools.queue) == [Request("pool", NAMESPACE)]

    def test_cluster_event_queues_its_claims(self, wiring):
        manager, claims, _ = wiring()
        manager.cache.upsert(
            make_claim(name="member", labels={CLUSTER_NAME_LABEL: "cluster"}).to_dict()
        )
        manager.cache.upsert(make_claim(name="stranger").to_dict())

        deliver(manager, Cluster, make_cluster().to_dict(), "MODIFIED")

        assert drain(claims.queue) == [Request("member", NAMESPACE)]

    def test_deleted_objects_leave_the_cache(self, wiring):
        manager, _, _ = wiring()

        deliver(manager, IPAddressClaim, make_claim().to_dict())
        deliver(manager, IPAddressClaim, make_claim().to_dict(), "DELETED")

        assert manager.cache.get(IPAddressClaim, "test", NAMESPACE) is None
