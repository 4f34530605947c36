import pytest

from infoblox_ipam.index import (
    POOL_REF_FIELD,
    list_addresses_in_use,
    list_claims_referencing_pool,
    pool_ref_value,
    setup_indexes,
)
from infoblox_ipam.kube.cache import ObjectCache
from infoblox_ipam.models.resources import (
    IPAM_GROUP,
    POOL_KIND,
    IPAddress,
    IPAddressClaim,
    IPPoolReference,
)

from tests.factories import NAMESPACE, make_claim

POOL_REF = IPPoolReference(api_group=IPAM_GROUP, kind=POOL_KIND, name="pool")


def claim_in(namespace, name, pool="pool"):
    claim = make_claim(name=name, pool=pool)
    claim.metadata.namespace = namespace
    return claim.to_dict()


@pytest.fixture
def cache():
    cache = ObjectCache()
    setup_indexes(cache)
    return cache


class TestObjectCache:
    def test_upsert_get_remove(self, cache):
        cache.upsert(claim_in(NAMESPACE, "a"))

        assert cache.get(IPAddressClaim, "a", NAMESPACE).name == "a"
        assert cache.get(IPAddressClaim, "a", "elsewhere") is None

        cache.remove(claim_in(NAMESPACE, "a"))
        assert cache.get(IPAddressClaim, "a", NAMESPACE) is None

    def test_list_by_namespace(self, cache):
        cache.upsert(claim_in("one", "a"))
        cache.upsert(claim_in("two", "b"))

        assert [c.name for c in cache.list(IPAddressClaim, "one")] == ["a"]
        assert sorted(c.name for c in cache.list(IPAddressClaim)) == ["a", "b"]

    def test_replace_all(self, cache):
        cache.upsert(claim_in(NAMESPACE, "stale"))

        cache.replace_all(
            IPAddressClaim.API_VERSION, IPAddressClaim.KIND, [claim_in(NAMESPACE, "fresh")]
        )

        assert [c.name for c in cache.list(IPAddressClaim)] == ["fresh"]
        assert [
            c.name
            for c in cache.by_index(IPAddressClaim, POOL_REF_FIELD, "InfobloxIPPoolpool")
        ] == ["fresh"]

    def test_index_follows_updates(self, cache):
        cache.upsert(claim_in(NAMESPACE, "a", pool="old"))
        cache.upsert(claim_in(NAMESPACE, "a", pool="new"))

        assert cache.by_index(IPAddressClaim, POOL_REF_FIELD, "InfobloxIPPoolold") == []
        assert len(cache.by_index(IPAddressClaim, POOL_REF_FIELD, "InfobloxIPPoolnew")) == 1

    def test_index_registered_late_covers_existing_objects(self):
        cache = ObjectCache()
        cache.upsert(claim_in(NAMESPACE, "a"))

        setup_indexes(cache)

        assert len(cache.by_index(IPAddressClaim, POOL_REF_FIELD, "InfobloxIPPoolpool")) == 1

    def test_index_is_registered_once(self, cache):
        with pytest.raises(ValueError):
            setup_indexes(cache)

    def test_unknown_index(self):
        with pytest.raises(KeyError):
            ObjectCache().by_index(IPAddressClaim, POOL_REF_FIELD, "x")

    def test_index_lookup_across_namespaces(self, cache):
        cache.upsert(claim_in("one", "a"))
        cache.upsert(claim_in("two", "b"))

        value = pool_ref_value(POOL_REF)
        assert len(cache.by_index(IPAddressClaim, POOL_REF_FIELD, value, "one")) == 1
        assert len(cache.by_index(IPAddressClaim, POOL_REF_FIELD, value)) == 2


class TestPoolIndex:
    def test_claims_referencing_pool(self, cache):
        cache.upsert(claim_in(NAMESPACE, "a"))
        cache.upsert(claim_in(NAMESPACE, "b", pool="other"))
        cache.upsert(claim_in("elsewhere", "c"))

        claims = list_claims_referencing_pool(cache, NAMESPACE, POOL_REF)

        assert [c.name for c in claims] == ["a"]

    def test_addresses_in_use(self, cache):
        address = IPAddress.model_validate(
            {
                "metadata": {"name": "a", "namespace": NAMESPACE},
                "spec": {
                    "address": "10.0.0.2",
                    "poolRef": POOL_REF.to_dict(),
                    "claimRef": {"name": "a"},
                },
            }
        )
        cache.upsert(address.to_dict())

        addresses = list_addresses_in_use(cache, NAMESPACE, POOL_REF)

        assert [a.spec.address for a in addresses] == ["10.0.0.2"]

    def test_objects_without_pool_are_not_indexed(self, cache):
        claim = claim_in(NAMESPACE, "a", pool="")
        cache.upsert(claim)

        assert cache.get(IPAddressClaim, "a", NAMESPACE) is not None
        assert list_claims_referencing_pool(cache, NAMESPACE, POOL_REF) == []

    def test_relist_never_hides_referencing_claims(self, cache):
        cache.upsert(claim_in(NAMESPACE, "a"))
        seen = []

        def observe(obj):
            seen.append(len(list_claims_referencing_pool(cache, NAMESPACE, POOL_REF)))
            return []

        cache.add_index(IPAddressClaim, "observer", observe)
        seen.clear()

        cache.replace_all(
            IPAddressClaim.API_VERSION, IPAddressClaim.KIND, [claim_in(NAMESPACE, "a")]
        )

        assert seen == [1]
        assert len(list_claims_referencing_pool(cache, NAMESPACE, POOL_REF)) == 1

    def test_updates_after_relist_keep_the_index_consistent(self, cache):
        cache.replace_all(
            IPAddressClaim.API_VERSION, IPAddressClaim.KIND, [claim_in(NAMESPACE, "a")]
        )

        cache.upsert(claim_in(NAMESPACE, "a", pool="other"))

        assert list_claims_referencing_pool(cache, NAMESPACE, POOL_REF) == []
        cache.remove(claim_in(NAMESPACE, "a", pool="other"))
        assert cache.get(IPAddressClaim, "a", NAMESPACE) is None
