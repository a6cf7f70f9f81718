"""Tests for client IP resolution behind trusted proxies."""

from unittest.mock import MagicMock, patch

import pytest

from lockguard.core.client_ip import TrustedProxies, get_client_ip, trusted_proxies


@pytest.fixture(autouse=True)
def _clear_cache():
    trusted_proxies.cache_clear()
    yield
    trusted_proxies.cache_clear()


def trusting(proxies: str):
    settings = MagicMock()
    settings.trusted_proxies = proxies
    return patch("lockguard.core.client_ip.get_settings", return_value=settings)


def make_request(client_host: str | None = "10.0.0.1", headers: dict | None = None):
    request = MagicMock()
    if client_host is None:
        request.client = None
    else:
        request.client.host = client_host
    request.headers = headers or {}
    return request


class TestTrustedProxies:
    def test_parses_ips_and_cidrs(self):
        proxies = TrustedProxies.parse(" 127.0.0.1 , 172.16.0.0/12,,::1")

        assert proxies.addresses == frozenset({"127.0.0.1", "::1"})
        assert [str(n) for n in proxies.networks] == ["172.16.0.0/12"]

    def test_membership(self):
        proxies = TrustedProxies.parse("127.0.0.1,172.16.0.0/12")

        assert "127.0.0.1" in proxies
        assert "172.18.0.3" in proxies
        assert "10.0.0.1" not in proxies
        assert "testclient" not in proxies

    def test_empty(self):
        assert "127.0.0.1" not in TrustedProxies.parse("")

    def test_read_from_settings_once(self):
        with trusting("10.0.0.0/8") as mock_get:
            trusted_proxies()
            trusted_proxies()
        assert mock_get.call_count == 1


class TestGetClientIp:
    def test_direct_ip_when_untrusted(self):
        with trusting("127.0.0.1"):
            request = make_request(
                "10.0.0.99", {"X-Real-IP": "1.2.3.4", "X-Forwarded-For": "5.6.7.8"}
            )
            assert get_client_ip(request) == "10.0.0.99"

    def test_prefers_x_real_ip_from_trusted_proxy(self):
        with trusting("172.16.0.0/12"):
            request = make_request(
                "172.18.0.3", {"X-Real-IP": " 203.0.113.50 ", "X-Forwarded-For": "5.6.7.8"}
            )
            assert get_client_ip(request) == "203.0.113.50"

    def test_first_forwarded_for_entry(self):
        with trusting("172.16.0.0/12"):
            request = make_request("172.20.0.1", {"X-Forwarded-For": "1.2.3.4, 5.6.7.8"})
            assert get_client_ip(request) == "1.2.3.4"

    def test_trusted_proxy_without_headers(self):
        with trusting("172.16.0.0/12"):
            assert get_client_ip(make_request("172.20.0.1")) == "172.20.0.1"

    def test_no_client_defaults_to_loopback(self):
        with trusting(""):
            assert get_client_ip(make_request(None)) == "127.0.0.1"
