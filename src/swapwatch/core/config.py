"""
Tracker configuration.

One YAML file per tracked wallet under `bots/`. String values may reference
environment variables as `${VAR}`; `.env` is loaded first with python-dotenv.

    name: whale-1
    enabled: true
    tracked_wallet: ${TRACK_WALLET}
    trader_name: Whale
    rpc_endpoint: ${SOLANA_RPC_ENDPOINT}
    wss_endpoint: ${SOLANA_WSS_ENDPOINT}
    telegram:
      bot_token: ${TELEGRAM_BOT_TOKEN}
      subscribers: ${TELEGRAM_SUBSCRIBERS}
    subscription:
      max_reconnect_attempts: 5
      reconnect_delay: 5.0

Without YAML files the trackers are read from the environment instead:
TRACK_WALLET and TRACK_WALLET_1..5, each with an optional TRADER_NAME[_n].
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from solders.pubkey import Pubkey

from swapwatch.utils.logger import get_logger

logger = get_logger(__name__)

ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
MAX_ENV_TRACKERS = 5
DEFAULT_BOTS_DIR = Path("bots")


class ConfigError(Exception):
    """Invalid or incomplete tracker configuration."""


@dataclass
class SubscriptionSettings:
    max_reconnect_attempts: int = 5
    reconnect_delay: float = 5.0
    ping_interval: float = 60.0
    ready_poll_attempts: int = 10
    ready_poll_interval: float = 0.2
    commitment: str = "confirmed"


@dataclass
class TrackerConfig:
    name: str
    tracked_wallet: str
    rpc_endpoint: str
    wss_endpoint: str
    bot_token: str
    subscribers: list[str]
    trader_name: str = ""
    enabled: bool = True
    subscription: SubscriptionSettings = field(default_factory=SubscriptionSettings)

    def __post_init__(self):
        if not self.trader_name:
            self.trader_name = default_trader_name(self.tracked_wallet)


def default_trader_name(address: str) -> str:
    """First four and last four characters: 'AbCd..WxYz'."""
    return f"{address[:4]}..{address[-4:]}"


def validate_address(address: str) -> str:
    try:
        Pubkey.from_string(address)
    except (ValueError, TypeError) as e:
        raise ConfigError(f"invalid wallet address '{address}': {e}") from e
    return address


def parse_subscribers(value: Any) -> list[str]:
    """Recipients as a YAML list or a comma separated string."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value).split(",")
    return [str(item).strip() for item in items if str(item).strip()]


def resolve_env_vars(value: Any) -> Any:
    """Replace `${VAR}` references in every string of a loaded YAML tree."""
    if isinstance(value, dict):
        return {key: resolve_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]
    if isinstance(value, str):
        missing = [var for var in ENV_VAR_PATTERN.findall(value) if os.environ.get(var) is None]
        if missing:
            raise ConfigError(f"environment variable(s) not set: {', '.join(missing)}")
        return ENV_VAR_PATTERN.sub(lambda m: os.environ[m.group(1)], value)
    return value


def _require(cfg: dict, key: str, source: str) -> str:
    value = cfg.get(key)
    if value is None or str(value).strip() == "":
        raise ConfigError(f"{source}: '{key}' is required")
    return str(value).strip()


def _subscription_settings(raw: Optional[dict], source: str) -> SubscriptionSettings:
    raw = raw or {}
    defaults = SubscriptionSettings()
    try:
        settings = SubscriptionSettings(
            max_reconnect_attempts=int(raw.get("max_reconnect_attempts", defaults.max_reconnect_attempts)),
            reconnect_delay=float(raw.get("reconnect_delay", defaults.reconnect_delay)),
            ping_interval=float(raw.get("ping_interval", defaults.ping_interval)),
            ready_poll_attempts=int(raw.get("ready_poll_attempts", defaults.ready_poll_attempts)),
            ready_poll_interval=float(raw.get("ready_poll_interval", defaults.ready_poll_interval)),
            commitment=str(raw.get("commitment", defaults.commitment)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{source}: invalid subscription settings: {e}") from e

    if settings.max_reconnect_attempts < 0:
        raise ConfigError(f"{source}: max_reconnect_attempts must be >= 0")
    if settings.ready_poll_attempts < 1:
        raise ConfigError(f"{source}: ready_poll_attempts must be >= 1")
    if min(settings.reconnect_delay, settings.ping_interval, settings.ready_poll_interval) <= 0:
        raise ConfigError(f"{source}: intervals and delays must be positive")
    return settings


def tracker_from_dict(cfg: dict, source: str = "config") -> TrackerConfig:
    """Build and validate a TrackerConfig from an env-resolved dict."""
    if not isinstance(cfg, dict):
        raise ConfigError(f"{source}: expected a mapping")

    wallet = validate_address(_require(cfg, "tracked_wallet", source))
    telegram = cfg.get("telegram") or {}

    return TrackerConfig(
        name=str(cfg.get("name") or default_trader_name(wallet)),
        enabled=bool(cfg.get("enabled", True)),
        tracked_wallet=wallet,
        trader_name=str(cfg.get("trader_name") or ""),
        rpc_endpoint=_require(cfg, "rpc_endpoint", source),
        wss_endpoint=_require(cfg, "wss_endpoint", source),
        bot_token=_require(telegram, "bot_token", f"{source}: telegram"),
        subscribers=parse_subscribers(telegram.get("subscribers")),
        subscription=_subscription_settings(cfg.get("subscription"), source),
    )


def load_tracker_config(path: str | Path) -> TrackerConfig:
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"{path}: {e}") from e
    if not raw:
        raise ConfigError(f"{path}: empty or invalid YAML")
    return tracker_from_dict(resolve_env_vars(raw), source=str(path))


def load_env_trackers() -> list[TrackerConfig]:
    """Trackers from TRACK_WALLET and TRACK_WALLET_1..5."""
    common = {
        "rpc_endpoint": os.getenv("SOLANA_RPC_ENDPOINT"),
        "wss_endpoint": os.getenv("SOLANA_WSS_ENDPOINT"),
        "telegram": {
            "bot_token": os.getenv("TELEGRAM_BOT_TOKEN"),
            "subscribers": os.getenv("TELEGRAM_SUBSCRIBERS"),
        },
    }

    trackers = []
    for suffix in [""] + [f"_{n}" for n in range(1, MAX_ENV_TRACKERS + 1)]:
        wallet = os.getenv(f"TRACK_WALLET{suffix}")
        if not wallet:
            continue
        cfg = dict(common, tracked_wallet=wallet.strip(), trader_name=os.getenv(f"TRADER_NAME{suffix}"))
        trackers.append(tracker_from_dict(cfg, source=f"env TRACK_WALLET{suffix}"))
    return trackers


def load_trackers(bots_dir: str | Path = DEFAULT_BOTS_DIR, env_file: Optional[str] = None) -> list[TrackerConfig]:
    """Enabled trackers from `bots_dir/*.yaml`, or from the environment when there are none.

    Invalid files are logged and skipped so one broken config does not stop
    the others.
    """
    load_dotenv(env_file)

    bots_dir = Path(bots_dir)
    files = sorted(bots_dir.glob("*.yaml")) if bots_dir.is_dir() else []
    if not files:
        logger.info(f"[CONFIG] No YAML configs in '{bots_dir}', reading trackers from environment")
        trackers = load_env_trackers()
        if not trackers:
            raise ConfigError("no trackers configured (no bots/*.yaml and TRACK_WALLET unset)")
        return trackers

    trackers = []
    for path in files:
        try:
            tracker = load_tracker_config(path)
        except ConfigError as e:
            logger.error(f"[CONFIG] Skipping {path.name}: {e}")
            continue
        if not tracker.enabled:
            logger.info(f"[CONFIG] Skipping disabled tracker '{tracker.name}'")
            continue
        trackers.append(tracker)

    if not trackers:
        raise ConfigError(f"no enabled trackers in '{bots_dir}'")
    return trackers
