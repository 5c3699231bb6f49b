"""
Configuration management using Pydantic Settings.

All settings are loaded from environment variables (prefixed with ``FLUX_``)
with sensible defaults. Constructor arguments on the clients always win over
these values.
"""

from enum import Enum
from typing import Optional

from pydantic_settings import BaseSettings


class Network(str, Enum):
    """Which Surflux deployment to talk to."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    CUSTOM = "custom"  # Requires an explicit custom_url


FLUX_BASE_URLS = {
    Network.MAINNET: "https://flux.surflux.dev",
    Network.TESTNET: "https://testnet-flux.surflux.dev",
}

# Fixed cursor cache keys, one per client flavor
PACKAGE_EVENTS_CACHE_KEY = "surflux_package_events_last_timestamp"
DEEPBOOK_EVENTS_CACHE_KEY = "surflux_deepbook_events_last_timestamp"


def get_flux_base_url(network: Network, custom_url: Optional[str] = None) -> str:
    """
    Resolve the streaming base URL for a network.

    Raises:
        ValueError: If network is CUSTOM and no custom_url was given
    """
    network = Network(network)
    if network is not Network.CUSTOM:
        return FLUX_BASE_URLS[network]

    if not custom_url:
        raise ValueError("Custom URL is required for custom network")

    return custom_url.rstrip("/")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Sent as the User-Agent header
    user_agent: str = "flux-events"

    # Stream settings
    network: Network = Network.MAINNET
    custom_url: Optional[str] = None
    api_key: Optional[str] = None  # Package events stream
    stream_key: Optional[str] = None  # Deepbook streams
    connect_timeout: float = 10.0  # Seconds to wait for the stream to open

    # Named subscriptions look up package-info.json here
    generated_types_path: str = "./sui-events"

    # Redis settings (for durable cursors)
    redis_url: Optional[str] = None
    cursor_ttl_days: int = 30

    log_level: str = "INFO"

    model_config = {
        "env_prefix": "FLUX_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
