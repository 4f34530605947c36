import pytest

from infoblox_ipam.controllers.claim_handler import (
    HOSTNAME_ANNOTATION,
    InfobloxProviderAdapter,
)
from infoblox_ipam.exceptions import (
    AddressAllocationFailedError,
    AddressReleaseFailedError,
    ConfigurationError,
)
from infoblox_ipam.ipamutil import (
    PROTECT_ADDRESS_FINALIZER,
    RELEASE_ADDRESS_FINALIZER,
    ClaimReconciler,
)
from infoblox_ipam.kube.meta import CLUSTER_NAME_LABEL, PAUSED_ANNOTATION
from infoblox_ipam.models.resources import (
    CLUSTER_GROUP,
    InfobloxIPPool,
    IPAddress,
    IPAddressClaim,
)
from infoblox_ipam.runtime.queue import Request

from tests.factories import (
    NAMESPACE,
    OPERATOR_NAMESPACE,
    make_claim,
    make_cluster,
    make_instance,
    make_pool,
    make_secret,
    owner,
)


@pytest.fixture
def reconciler(kube, clients):
    return ClaimReconciler(kube, InfobloxProviderAdapter(clients, OPERATOR_NAMESPACE))


def reconcile(reconciler, name="test"):
    return reconciler.reconcile(Request(name, NAMESPACE))


def stored_claim(kube, name="test"):
    return kube.stored(IPAddressClaim, name, NAMESPACE)


def stored_address(kube, name="test"):
    return kube.stored(IPAddress, name, NAMESPACE)


class TestAllocation:
    def test_address_from_claim_name(self, kube, wapi, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_claim())

        reconcile(reconciler)

        address = stored_address(kube)
        assert address.spec.address == "10.0.0.2"
        assert address.spec.prefix == 24
        assert address.spec.gateway == "10.0.0.1"
        assert address.spec.claim_ref.name == "test"
        assert address.spec.pool_ref.name == "pool"
        assert address.spec.pool_ref.kind == "InfobloxIPPool"
        assert PROTECT_ADDRESS_FINALIZER in address.metadata.finalizers

        claim = stored_claim(kube)
        assert RELEASE_ADDRESS_FINALIZER in claim.metadata.finalizers
        assert claim.metadata.annotations[HOSTNAME_ANNOTATION] == "test"
        assert claim.status.address_ref.name == "test"
        assert claim.status.conditions[0].status == "True"
        assert wapi.addresses("test") == ["10.0.0.2"]

    def test_address_owners(self, kube, instance, reconciler):
        pool = kube.add(make_pool())
        claim = kube.add(make_claim())

        reconcile(reconciler)

        refs = {ref.kind: ref for ref in stored_address(kube).metadata.owner_references}
        assert refs["IPAddressClaim"].controller is True
        assert refs["IPAddressClaim"].uid == claim.metadata.uid
        assert refs["InfobloxIPPool"].controller is False
        assert refs["InfobloxIPPool"].uid == pool.metadata.uid

    def test_hostname_from_machine_in_dns_zone(self, kube, wapi, instance, reconciler):
        kube.add(make_pool(dns_zone="example.com"))
        kube.add(make_claim(owners=[owner("Machine", "machine-1", group=CLUSTER_GROUP)]))

        reconcile(reconciler)

        record = wapi.find("machine-1.example.com")
        assert record["configure_for_dns"] is True
        assert record["view"] == "default"
        claim = stored_claim(kube)
        assert claim.metadata.annotations[HOSTNAME_ANNOTATION] == "machine-1.example.com"

    def test_reconcile_is_idempotent(self, kube, wapi, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_claim())
        reconcile(reconciler)
        writes = wapi.mutations
        address_version = stored_address(kube).metadata.resource_version

        reconcile(reconciler)

        assert wapi.mutations == writes
        assert stored_address(kube).metadata.resource_version == address_version
        assert stored_address(kube).spec.address == "10.0.0.2"

    def test_foreign_owner_reference_is_kept(self, kube, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_claim())
        kube.add(
            IPAddress.model_validate(
                {
                    "metadata": {
                        "name": "test",
                        "namespace": NAMESPACE,
                        "ownerReferences": [owner("Backup", "b", group="example.com").to_dict()],
                    },
                    "spec": {"claimRef": {"name": "test"}},
                }
            )
        )

        reconcile(reconciler)

        kinds = {ref.kind for ref in stored_address(kube).metadata.owner_references}
        assert kinds == {"Backup", "IPAddressClaim", "InfobloxIPPool"}
        assert stored_address(kube).spec.address == "10.0.0.2"

    def test_exhausted_pool_reports_on_the_claim(self, kube, wapi, instance, reconciler):
        wapi.exhausted.add("10.0.0.0/24")
        kube.add(make_pool())
        kube.add(make_claim())

        with pytest.raises(AddressAllocationFailedError):
            reconcile(reconciler)

        claim = stored_claim(kube)
        assert claim.status.conditions[0].reason == "AddressAllocationFailed"
        assert RELEASE_ADDRESS_FINALIZER in claim.metadata.finalizers
        assert stored_address(kube) is None

    def test_invalid_credentials(self, kube, reconciler):
        kube.add(make_secret(username="admin"))
        kube.add(make_instance())
        kube.add(make_pool())
        kube.add(make_claim())

        with pytest.raises(ConfigurationError):
            reconcile(reconciler)

        assert stored_claim(kube).status.conditions[0].reason == "AuthenticationFailed"

    def test_missing_claim(self, reconciler):
        assert reconcile(reconciler, "gone").requeue_after is None


class TestSkipped:
    def test_paused_claim(self, kube, wapi, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_claim(annotations={PAUSED_ANNOTATION: ""}))

        reconcile(reconciler)

        assert RELEASE_ADDRESS_FINALIZER in stored_claim(kube).metadata.finalizers
        assert stored_address(kube) is None
        assert wapi.mutations == 0

    def test_paused_cluster(self, kube, wapi, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_cluster(paused=True))
        kube.add(make_claim(labels={CLUSTER_NAME_LABEL: "cluster"}))

        reconcile(reconciler)

        assert stored_address(kube) is None
        assert wapi.mutations == 0

    def test_missing_cluster(self, kube, wapi, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_claim(labels={CLUSTER_NAME_LABEL: "cluster"}))

        reconcile(reconciler)

        assert stored_address(kube) is None

    def test_running_cluster(self, kube, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_cluster())
        kube.add(make_claim(labels={CLUSTER_NAME_LABEL: "cluster"}))

        reconcile(reconciler)

        assert stored_address(kube).spec.address == "10.0.0.2"

    def test_paused_pool(self, kube, wapi, instance, reconciler):
        kube.add(make_pool(annotations={PAUSED_ANNOTATION: "true"}))
        kube.add(make_claim())

        reconcile(reconciler)

        assert stored_address(kube) is None
        assert wapi.mutations == 0

    def test_missing_pool(self, kube, instance, reconciler):
        kube.add(make_claim())

        reconcile(reconciler)

        assert stored_address(kube) is None
        assert RELEASE_ADDRESS_FINALIZER in stored_claim(kube).metadata.finalizers


class TestDeletion:
    def allocate(self, kube, reconciler, **pool):
        kube.add(make_pool(**pool))
        kube.add(make_claim())
        reconcile(reconciler)
        kube.delete(stored_claim(kube))

    def test_releases_then_removes_address_and_claim(self, kube, wapi, instance, reconciler):
        self.allocate(kube, reconciler)
        start = len(kube.actions)

        reconcile(reconciler)

        assert wapi.find("test") is None
        assert stored_address(kube) is None
        assert stored_claim(kube) is None
        verbs = [(verb, kind) for verb, kind, _ in kube.actions[start:]]
        assert verbs.index(("delete", "IPAddress")) < verbs.index(("patch", "IPAddressClaim"))

    def test_release_failure_keeps_address_and_claim(
        self, kube, wapi, instance, reconciler
    ):
        self.allocate(kube, reconciler)
        wapi.fail_writes = "grid is read only"

        with pytest.raises(AddressReleaseFailedError):
            reconcile(reconciler)

        assert stored_address(kube) is not None
        assert RELEASE_ADDRESS_FINALIZER in stored_claim(kube).metadata.finalizers
        assert wapi.find("test") is not None

        wapi.fail_writes = None
        reconcile(reconciler)
        assert stored_claim(kube) is None

    def test_stored_hostname_is_used_for_release(self, kube, wapi, instance, reconciler):
        kube.add(make_pool(dns_zone="example.com"))
        kube.add(make_claim(owners=[owner("Machine", "machine-1", group=CLUSTER_GROUP)]))
        reconcile(reconciler)

        # Owners are usually gone by the time the claim is deleted
        claim = stored_claim(kube)
        claim.metadata.owner_references = []
        kube.add(claim)
        kube.delete(claim)

        reconcile(reconciler)

        assert wapi.find("machine-1.example.com") is None
        assert stored_claim(kube) is None

    def test_missing_pool_still_lets_the_claim_go(self, kube, wapi, instance, reconciler):
        self.allocate(kube, reconciler)
        kube.delete(kube.stored(InfobloxIPPool, "pool", NAMESPACE))

        reconcile(reconciler)

        assert stored_address(kube) is None
        assert stored_claim(kube) is None
        # Without a pool there is nothing to release against
        assert wapi.find("test") is not None

    def test_deleting_claim_gets_no_new_finalizer(self, kube, instance, reconciler):
        kube.add(make_pool())
        kube.add(make_claim(finalizers=["example.com/other"], deleting=True))

        reconcile(reconciler)

        claim = stored_claim(kube)
        assert claim.metadata.finalizers == ["example.com/other"]
        assert stored_address(kube) is None
