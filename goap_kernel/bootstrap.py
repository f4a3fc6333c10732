"""
Service wiring — builds the shared monitor, cache and gateway once.

Hosts construct ``Services`` at startup, hand its members to the agents
that need them, and call ``shutdown()`` on the way out.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from goap_kernel.gateway.cache import ResponseCache
from goap_kernel.gateway.clients import ProviderClient, build_provider_clients
from goap_kernel.gateway.service import ProviderGateway
from goap_kernel.logging_setup import configure_logging
from goap_kernel.observability.monitor import PerformanceMonitor
from goap_kernel.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    monitor: PerformanceMonitor
    cache: ResponseCache
    gateway: ProviderGateway

    async def shutdown(self) -> None:
        """Release provider connections and drop cached and recorded data."""
        await self.gateway.close()
        self.cache.clear()
        self.monitor.shutdown()
        logger.info("Services shut down")


def build_services(
    settings: Optional[Settings] = None,
    clients: Optional[Mapping[str, ProviderClient]] = None,
    setup_logging: bool = False,
) -> Services:
    """
    Construct the shared services from ``settings``.

    ``clients`` replaces the SDK-backed provider clients (tests, custom vendors).
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    gateway_config = settings.gateway_config()
    monitor = PerformanceMonitor(settings.monitor_config())
    cache = ResponseCache(gateway_config.cache)
    provider_configs = settings.provider_configs()
    if clients is None:
        clients = build_provider_clients(provider_configs.values())

    gateway = ProviderGateway(
        clients,
        provider_configs=provider_configs,
        config=gateway_config,
        cache=cache,
        monitor=monitor,
    )
    logger.info(
        "Services ready: providers=%s fallback=%s",
        ",".join(gateway.providers) or "none",
        ",".join(gateway.fallback_order),
    )
    return Services(settings=settings, monitor=monitor, cache=cache, gateway=gateway)
