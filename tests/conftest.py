import pytest

from infoblox_ipam.infoblox import ClientManager
from infoblox_ipam.infoblox.client import InfobloxClient

from tests.factories import make_instance, make_secret
from tests.fakes import FakeObjectClient, FakeWAPI


@pytest.fixture
def kube() -> FakeObjectClient:
    return FakeObjectClient()


@pytest.fixture
def wapi() -> FakeWAPI:
    grid = FakeWAPI()
    grid.add_network("10.0.0.0/24")
    grid.add_network("10.0.1.0/24")
    return grid


@pytest.fixture
def clients(wapi):
    """Client registry whose clients talk to the fake grid."""
    manager = ClientManager(
        factory=lambda config: InfobloxClient(config, transport=wapi.transport)
    )
    yield manager
    manager.close()


@pytest.fixture
def instance(kube):
    """An InfobloxInstance with a valid credentials secret."""
    kube.add(make_secret())
    return kube.add(make_instance())
