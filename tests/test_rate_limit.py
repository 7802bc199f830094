"""Client address resolution for rate limit keys."""

import pytest
from starlette.requests import Request

from stepup_api.config import get_settings
from stepup_api.security import rate_limit
from stepup_api.security.rate_limit import get_real_client_ip


def make_request(peer: str, forwarded_for: str | None = None) -> Request:
    headers = [(b"x-forwarded-for", forwarded_for.encode())] if forwarded_for else []
    return Request({"type": "http", "client": (peer, 50000), "headers": headers})


@pytest.fixture
def trust(monkeypatch):
    def _trust(proxies: str) -> None:
        settings = get_settings().model_copy(update={"trusted_proxies": proxies})
        monkeypatch.setattr(rate_limit, "get_settings", lambda: settings)

    return _trust


class TestRealClientIp:
    def test_direct_peer_without_header(self, trust) -> None:
        trust("10.0.0.0/8")

        assert get_real_client_ip(make_request("198.51.100.7")) == "198.51.100.7"

    def test_header_ignored_from_untrusted_peer(self, trust) -> None:
        trust("10.0.0.0/8")

        request = make_request("198.51.100.7", "203.0.113.5")

        assert get_real_client_ip(request) == "198.51.100.7"

    def test_header_ignored_when_no_proxy_is_trusted(self, trust) -> None:
        trust("")

        assert get_real_client_ip(make_request("127.0.0.1", "203.0.113.5")) == "127.0.0.1"

    @pytest.mark.parametrize("proxies", ["10.0.0.0/8", "10.1.2.3", "192.168.0.1, 10.1.2.3"])
    def test_left_most_forwarded_address_from_trusted_proxy(self, trust, proxies: str) -> None:
        trust(proxies)

        request = make_request("10.1.2.3", "203.0.113.5, 10.1.2.3")

        assert get_real_client_ip(request) == "203.0.113.5"

    def test_unparseable_forwarded_address_falls_back_to_peer(self, trust) -> None:
        trust("10.0.0.0/8")

        assert get_real_client_ip(make_request("10.1.2.3", "not-an-ip")) == "10.1.2.3"
