"""Per-client rate limits for the step-up endpoints."""

from ipaddress import IPv4Network, IPv6Network, ip_address, ip_network

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from stepup_api.config import get_settings


def _trusted_networks() -> list[IPv4Network | IPv6Network]:
    """Parse TRUSTED_PROXIES; a bare address is a single-host network."""
    return [ip_network(proxy, strict=False) for proxy in get_settings().trusted_proxies_list]


def get_real_client_ip(request: Request) -> str:
    """Client address used for rate limit keys and security events.

    X-Forwarded-For is honoured only when the direct peer is a configured
    trusted proxy; its left-most entry must parse as an IP address.
    """
    peer = get_remote_address(request)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if not forwarded_for:
        return peer

    try:
        peer_addr = ip_address(peer)
    except ValueError:
        return peer
    if not any(peer_addr in network for network in _trusted_networks()):
        return peer

    client = forwarded_for.split(",")[0].strip()
    try:
        ip_address(client)
    except ValueError:
        return peer
    return client


def _storage_uri() -> str | None:
    """Redis shares counters across workers; memory storage is per process."""
    settings = get_settings()
    if settings.redis_url:
        return str(settings.redis_url)
    if settings.environment == "production":
        raise ValueError("REDIS_URL must be configured in production for rate limiting.")
    return None


_settings = get_settings()

API_DEFAULT_LIMIT = f"{_settings.rate_limit_default}/minute"
STEP_UP_SECRET_LIMIT = f"{_settings.rate_limit_step_up_secret}/minute"
STEP_UP_VERIFY_LIMIT = f"{_settings.rate_limit_step_up_verify}/minute"
AUTH_PASSWORD_CHANGE_LIMIT = f"{_settings.rate_limit_auth_password_change}/minute"

limiter = Limiter(
    key_func=get_real_client_ip,
    default_limits=[API_DEFAULT_LIMIT],
    storage_uri=_storage_uri(),
)
