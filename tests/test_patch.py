from infoblox_ipam.kube.meta import add_finalizer, mark_true
from infoblox_ipam.kube.patch import PatchHelper, merge_patch
from infoblox_ipam.models.resources import IPAddressClaim

from tests.factories import NAMESPACE, make_claim


class TestMergePatch:
    def test_no_change(self):
        assert merge_patch({"a": 1, "b": {"c": 2}}, {"a": 1, "b": {"c": 2}}) == {}

    def test_changed_and_added_keys(self):
        patch = merge_patch({"a": 1, "b": {"c": 2}}, {"a": 2, "b": {"c": 2, "d": 3}})
        assert patch == {"a": 2, "b": {"d": 3}}

    def test_removed_keys_become_null(self):
        assert merge_patch({"a": 1, "b": {"c": 2}}, {"b": {}}) == {"a": None, "b": {"c": None}}

    def test_lists_are_replaced_whole(self):
        assert merge_patch({"f": ["x"]}, {"f": ["x", "y"]}) == {"f": ["x", "y"]}


class TestPatchHelper:
    def test_unchanged_object_is_not_written(self, kube):
        claim = kube.add(make_claim())

        assert PatchHelper(claim, kube).patch(claim) is False
        assert kube.actions == []

    def test_body_and_status_are_patched_separately(self, kube):
        claim = kube.add(make_claim())
        helper = PatchHelper(claim, kube)

        add_finalizer(claim, "example.com/finalizer")
        mark_true(claim)

        assert helper.patch(claim) is True
        assert kube.verbs("IPAddressClaim") == ["patch", "patch_status"]
        stored = kube.stored(IPAddressClaim, "test", NAMESPACE)
        assert stored.metadata.finalizers == ["example.com/finalizer"]
        assert stored.status.conditions[0].status == "True"

    def test_status_of_a_removed_object_is_skipped(self, kube):
        claim = kube.add(make_claim(finalizers=["example.com/finalizer"]))
        kube.delete(claim)
        claim = kube.get(IPAddressClaim, "test", NAMESPACE)
        helper = PatchHelper(claim, kube)

        claim.metadata.finalizers = []
        mark_true(claim)
        helper.patch(claim)

        assert kube.stored(IPAddressClaim, "test", NAMESPACE) is None
