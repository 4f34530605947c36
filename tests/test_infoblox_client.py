import ipaddress

import httpx
import pytest

from infoblox_ipam.infoblox import (
    AuthConfig,
    CredentialsError,
    HostConfig,
    InfobloxAuthError,
    InfobloxClient,
    InfobloxConfig,
    InfobloxConnectionError,
    InfobloxError,
    InfobloxNotFoundError,
    auth_config_from_secret_data,
)


class TestCredentials:
    def test_username_and_password(self):
        auth = auth_config_from_secret_data({"username": b"admin", "password": b"pw"})
        assert auth.uses_basic_auth()
        assert auth.username == "admin"

    def test_client_certificate(self):
        auth = auth_config_from_secret_data(
            {"clientCert": b"CERT", "clientKey": b"KEY"}
        )
        assert not auth.uses_basic_auth()
        assert auth.client_cert == b"CERT"
        assert auth.client_key == b"KEY"

    def test_basic_auth_wins_when_both_are_present(self):
        auth = auth_config_from_secret_data(
            {
                "username": b"admin",
                "password": b"pw",
                "clientCert": b"CERT",
                "clientKey": b"KEY",
            }
        )
        assert auth.uses_basic_auth()
        assert auth.client_cert == b""

    @pytest.mark.parametrize(
        "data",
        [{}, {"username": b"admin"}, {"clientCert": b"CERT"}, {"password": b"pw"}],
    )
    def test_incomplete_pairs_are_rejected(self, data):
        with pytest.raises(CredentialsError):
            auth_config_from_secret_data(data)


class TestConfig:
    def test_base_url(self):
        host = HostConfig(host="grid.example.com", port="8443", version="2.12")
        assert host.base_url == "https://grid.example.com:8443/wapi/v2.12/"

    def test_fingerprint_tracks_credentials(self):
        host = HostConfig(host="grid.example.com", version="2.12")
        a = InfobloxConfig(host=host, auth=AuthConfig(username="u", password="1"))
        b = InfobloxConfig(host=host, auth=AuthConfig(username="u", password="1"))
        c = InfobloxConfig(host=host, auth=AuthConfig(username="u", password="2"))
        assert a.fingerprint() == b.fingerprint()
        assert a.fingerprint() != c.fingerprint()


class TestRequests:
    def test_basic_auth_and_user_agent_are_sent(self, wapi):
        client = wapi.client()
        client.check_network_view_exists("default")

        request = wapi.requests[-1]
        assert request.headers["Authorization"].startswith("Basic ")
        assert request.headers["User-Agent"] == "cluster-api-ipam-provider-infoblox"
        assert request.url.host == "grid.example.com"

    def test_rejected_credentials(self, wapi):
        wapi.reject_auth = True
        client = wapi.client()

        with pytest.raises(InfobloxAuthError) as excinfo:
            client.check_network_view_exists("default")
        assert excinfo.value.status_code == 401

    def test_unreachable_grid(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        config = InfobloxConfig(
            host=HostConfig(host="grid.example.com", version="2.12"),
            auth=AuthConfig(username="admin", password="secret"),
        )
        client = InfobloxClient(config, transport=httpx.MockTransport(refuse))

        with pytest.raises(InfobloxConnectionError):
            client.check_network_view_exists("default")

    def test_unknown_object_type_is_a_plain_error(self, wapi):
        client = wapi.client()

        with pytest.raises(InfobloxError) as excinfo:
            client.search("record:bogus", {})
        assert not isinstance(excinfo.value, InfobloxNotFoundError)
        assert excinfo.value.code == "Client.Ibap.AdmConProtoError"


class TestNotFound:
    def test_host_record_without_match(self, wapi):
        with pytest.raises(InfobloxNotFoundError):
            wapi.client().get_host_record("missing")

    def test_host_record_by_name(self, wapi):
        wapi.add_record("test", "10.0.0.5")

        record = wapi.client().get_host_record("test")

        assert record.name == "test"
        assert record.ipv4addrs[0].ipv4addr == "10.0.0.5"
        assert record.ref.startswith("record:host/")

    def test_unknown_reference_on_get(self, wapi):
        with pytest.raises(InfobloxNotFoundError) as excinfo:
            wapi.client().get_object("record:host/ZG5zLmhvc3Qk99:gone/default")
        assert excinfo.value.status_code == 404

    def test_unknown_reference_on_update(self, wapi):
        # The grid answers 400 with a not-found error class here
        with pytest.raises(InfobloxNotFoundError) as excinfo:
            wapi.client().update_object(
                "record:host/ZG5zLmhvc3Qk99:gone/default", {"name": "gone"}
            )
        assert excinfo.value.status_code == 400


class TestExistenceChecks:
    def test_network_view(self, wapi):
        client = wapi.client()
        assert client.check_network_view_exists("default")
        assert not client.check_network_view_exists("lab")

    def test_dns_view(self, wapi):
        wapi.dns_views.add("default.lab")
        client = wapi.client()
        assert client.check_dns_view_exists("default.lab")
        assert not client.check_dns_view_exists("internal")

    def test_network(self, wapi):
        client = wapi.client()
        assert client.check_network_exists("default", ipaddress.ip_network("10.0.0.0/24"))
        assert not client.check_network_exists("lab", ipaddress.ip_network("10.0.0.0/24"))

    def test_network_container_counts(self, wapi):
        wapi.network_containers.add(("10.8.0.0/16", "default"))
        client = wapi.client()
        assert client.check_network_exists("default", ipaddress.ip_network("10.8.0.0/16"))

    def test_ipv6_network_uses_ipv6_object_types(self, wapi):
        client = wapi.client()

        assert not client.check_network_exists(
            "default", ipaddress.ip_network("2001:db8::/64")
        )

        paths = [r.url.path.rsplit("/", 1)[-1] for r in wapi.requests]
        assert paths == ["ipv6network", "ipv6networkcontainer"]
