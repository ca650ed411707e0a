from __future__ import annotations

import logging
import socket
from collections.abc import Callable

import httpx

from .config import DEFAULT_COORDINATOR_CONFIG, CoordinatorConfig

logger = logging.getLogger(__name__)

ConnectivityCheck = Callable[[], bool]


def endpoint_reachable(url: str, timeout: float = 1.0) -> bool:
    """Return True if a TCP connection to the host serving ``url`` succeeds."""
    parsed = httpx.URL(url)
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    try:
        with socket.create_connection((parsed.host, port), timeout=timeout):
            return True
    except OSError as exc:
        logger.debug("Connectivity probe to %s:%s failed: %s", parsed.host, port, exc)
        return False


def default_connectivity(config: CoordinatorConfig = DEFAULT_COORDINATOR_CONFIG) -> ConnectivityCheck:
    """
    Build the predicate evaluated once at the start of every query.

    ``force_offline`` pins the coordinator to the local mirror; otherwise the
    remote endpoint is probed.
    """
    if config.force_offline:
        return lambda: False
    return lambda: endpoint_reachable(config.restaurants_url, timeout=config.probe_timeout)
