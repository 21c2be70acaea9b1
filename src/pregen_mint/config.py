"""
Service Configuration

Loads the environment-style configuration surface of the mint service into a
validated ``Settings`` model. Integers fall back to their documented default
when the variable is missing, malformed or below the field minimum.
"""

import os
from typing import Optional

import dotenv
import structlog
from pydantic import BaseModel, Field

from .adapters.evm.constants import NFT_CONTRACT_ADDRESS, get_alchemy_rpc_url

dotenv.load_dotenv()

log = structlog.get_logger(__name__)


def _int_env(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        log.warning("invalid_integer_setting", name=name, value=raw, default=default)
        return default
    if minimum is not None and value < minimum:
        log.warning("integer_setting_below_minimum", name=name, value=value, minimum=minimum, default=default)
        return default
    return value


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime configuration of the mint service."""

    environment: str = Field(default="production", description="development enables error details")
    log_level: str = Field(default="info")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # Resilience
    cache_ttl: int = Field(default=3600, ge=1, description="Result cache TTL in seconds")
    rate_limit_window: int = Field(default=900000, ge=1, description="Rate limit window in ms")
    rate_limit_max: int = Field(default=100, ge=1, description="Requests per window per client")
    circuit_breaker_threshold: int = Field(default=10, ge=0)
    circuit_breaker_reset_time: int = Field(default=300000, ge=0, description="Breaker cooldown in ms")
    max_retries: int = Field(default=3, ge=1)
    initial_retry_delay: int = Field(default=1000, ge=0, description="Base backoff delay in ms")
    provisioning_lock: bool = Field(default=False, description="Serialize first-time provisioning per identifier")
    trust_proxy: bool = Field(default=False, description="Key rate limits on X-Forwarded-For")

    # Custodial wallet service
    custody_secret: Optional[str] = None

    # Relay
    alchemy_api_key: Optional[str] = None
    alchemy_gas_policy_id: Optional[str] = None
    alchemy_rpc_url: Optional[str] = None

    # Share store
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None

    nft_contract_address: str = Field(default=NFT_CONTRACT_ADDRESS)

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def retry_after_seconds(self) -> float:
        """Breaker cooldown expressed in seconds, as advertised to clients."""
        return self.circuit_breaker_reset_time / 1000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (and ``.env``)."""
        api_key = os.getenv("ALCHEMY_API_KEY")
        return cls(
            environment=os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "production",
            log_level=os.getenv("LOG_LEVEL", "info"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_int_env("PORT", 8080, minimum=0),
            cache_ttl=_int_env("CACHE_TTL", 3600, minimum=1),
            rate_limit_window=_int_env("RATE_LIMIT_WINDOW", 900000, minimum=1),
            rate_limit_max=_int_env("RATE_LIMIT_MAX", 100, minimum=1),
            circuit_breaker_threshold=_int_env("CIRCUIT_BREAKER_THRESHOLD", 10, minimum=0),
            circuit_breaker_reset_time=_int_env("CIRCUIT_BREAKER_RESET_TIME", 300000, minimum=0),
            max_retries=_int_env("MAX_RETRIES", 3, minimum=1),
            initial_retry_delay=_int_env("INITIAL_RETRY_DELAY", 1000, minimum=0),
            provisioning_lock=_bool_env("PROVISIONING_LOCK"),
            trust_proxy=_bool_env("TRUST_PROXY"),
            custody_secret=os.getenv("CUSTODY_SECRET"),
            alchemy_api_key=api_key,
            alchemy_gas_policy_id=os.getenv("ALCHEMY_GAS_POLICY_ID"),
            alchemy_rpc_url=os.getenv("ALCHEMY_RPC_URL") or (get_alchemy_rpc_url(api_key) if api_key else None),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            nft_contract_address=os.getenv("NFT_CONTRACT_ADDRESS", NFT_CONTRACT_ADDRESS),
        )
