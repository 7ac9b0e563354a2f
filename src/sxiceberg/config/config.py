"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

from sxiceberg.core.json_utils import dumps

load_dotenv()

DEFAULT_BASE_TOKEN = "0x6629Ce1Cf35Cc1329ebB4F63202F3f197b3F050B"
DEFAULT_EXECUTOR = "0x52adf738AAD93c31f798a30b2C74D658e1E9a562"


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Settings:
    base_url: str
    private_key: str | None
    user_address: str | None
    api_key: str | None
    base_token: str
    executor: str
    chain_id: int
    chain_version: str
    tick_interval: float
    post_cooldown: float
    http_timeout: float
    active_order_retries: int
    retry_delay: float
    api_expiry_sec: int
    snapshot_refresh_sec: float
    trade_reconcile_sec: float
    book_retention_sec: float
    default_min_order_size: float
    realtime_enabled: bool
    metrics_port: int
    log_file: str | None
    log_level: str
    positions_file: str

    def dump(self) -> dict:
        """Return a dict of settings for logging, without secrets."""
        data = self.__dict__.copy()
        data.pop("private_key", None)
        data.pop("api_key", None)
        return data

    @classmethod
    def load(cls) -> "Settings":
        def _int_env(key: str, default: int) -> int:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return int(raw)

        def _float_env(key: str, default: float) -> float:
            raw = os.getenv(key)
            if raw is None or raw == "":
                return default
            return float(raw)

        cfg = cls(
            base_url=os.getenv("SX_BASE_URL", "https://api.sx.bet"),
            private_key=os.getenv("SX_PRIVATE_KEY"),
            user_address=os.getenv("SX_USER_ADDRESS"),
            api_key=os.getenv("SX_API_KEY"),
            base_token=os.getenv("SX_BASE_TOKEN", DEFAULT_BASE_TOKEN),
            executor=os.getenv("SX_EXECUTOR", DEFAULT_EXECUTOR),
            chain_id=_int_env("SX_CHAIN_ID", 4162),
            chain_version=os.getenv("SX_CHAIN_VERSION", "SXR"),
            tick_interval=_float_env("SX_TICK_INTERVAL_SEC", 3.5),
            post_cooldown=_float_env("SX_POST_COOLDOWN_SEC", 5.0),
            http_timeout=_float_env("SX_HTTP_TIMEOUT", 5.0),
            active_order_retries=_int_env("SX_ACTIVE_ORDER_RETRIES", 3),
            retry_delay=_float_env("SX_RETRY_DELAY_SEC", 2.0),
            api_expiry_sec=_int_env("SX_API_EXPIRY_SEC", 300),
            snapshot_refresh_sec=_float_env("SX_SNAPSHOT_REFRESH_SEC", 30.0),
            trade_reconcile_sec=_float_env("SX_TRADE_RECONCILE_SEC", 60.0),
            book_retention_sec=_float_env("SX_BOOK_RETENTION_SEC", 300.0),
            default_min_order_size=_float_env("SX_DEFAULT_MIN_ORDER_SIZE", 100.0),
            realtime_enabled=env_bool("SX_REALTIME_ENABLED", True),
            metrics_port=_int_env("SX_METRICS_PORT", 0),
            log_file=os.getenv("SX_LOG_FILE", "monitoring.log") or None,
            log_level=os.getenv("SX_LOG_LEVEL", "INFO").upper(),
            positions_file=os.getenv("SX_POSITIONS_FILE", "configs/positions.yaml"),
        )
        cfg._validate()
        _sanity_check(cfg)
        return cfg

    def resolve_signer(self):
        from eth_account import Account

        if not self.private_key:
            raise RuntimeError("Missing credentials: set SX_PRIVATE_KEY")
        return Account.from_key(self.private_key)

    def resolve_account(self) -> str:
        if self.private_key:
            return self.resolve_signer().address
        if self.user_address:
            return self.user_address
        raise RuntimeError("Missing SX_USER_ADDRESS or SX_PRIVATE_KEY")

    def _validate(self) -> None:
        if self.tick_interval <= 0:
            raise ValueError("SX_TICK_INTERVAL_SEC must be > 0")
        if self.post_cooldown < 0:
            raise ValueError("SX_POST_COOLDOWN_SEC must be >= 0")
        if self.http_timeout <= 0:
            raise ValueError("SX_HTTP_TIMEOUT must be > 0")
        if self.active_order_retries < 1:
            raise ValueError("SX_ACTIVE_ORDER_RETRIES must be >= 1")
        if self.retry_delay < 0:
            raise ValueError("SX_RETRY_DELAY_SEC must be >= 0")
        if self.api_expiry_sec <= 0:
            raise ValueError("SX_API_EXPIRY_SEC must be > 0")
        if self.book_retention_sec <= 0:
            raise ValueError("SX_BOOK_RETENTION_SEC must be > 0")
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"SX_LOG_LEVEL={self.log_level} is not a logging level")

        log = logging.getLogger("sxiceberg")
        if self.private_key and self.user_address:
            derived = self.resolve_signer().address
            if derived.lower() != self.user_address.lower():
                log.warning(
                    "WARNING: SX_USER_ADDRESS does not match the address derived from "
                    "SX_PRIVATE_KEY; orders are signed and filtered as the derived address."
                )
        if self.realtime_enabled and not self.api_key:
            log.warning(
                "WARNING: SX_API_KEY not set. Realtime feeds are disabled and the "
                "order book only refreshes from REST snapshots."
            )
        if self.post_cooldown < self.tick_interval:
            log.warning(
                f"WARNING: SX_POST_COOLDOWN_SEC={self.post_cooldown} is below the tick "
                f"interval ({self.tick_interval}s); reposts are only bounded by the tick."
            )


def _sanity_check(cfg: Settings) -> None:
    """
    Log critical settings once at startup so overrides are obvious.
    """
    logger = logging.getLogger("sxiceberg")
    payload = {
        "event": "config_loaded",
        "base_url": cfg.base_url,
        "chain_id": cfg.chain_id,
        "tick_interval": cfg.tick_interval,
        "post_cooldown": cfg.post_cooldown,
        "http_timeout": cfg.http_timeout,
        "realtime": cfg.realtime_enabled and bool(cfg.api_key),
    }
    logger.info(dumps(payload))
