"""
Runtime configuration for the homework solver
Values come from the environment (optionally a .env file loaded via dotenv)
"""
import os
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

ENV_PREFIX = "HW_SOLVER_"

# What the scheduler does when a cycle raises:
#   retry - reschedule at half interval, counters untouched
#   count - treat the error like a failed cycle (may trigger a skip)
ERROR_POLICIES = ("retry", "count")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[CONFIG] {ENV_PREFIX}{name}={raw!r} is not an integer, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


@dataclass
class SolverConfig:
    """All tunables of the solver, scheduler and completion client"""
    proxy_url: str = "https://gen.pollinations.ai/v1/chat/completions"
    api_key: str = ""
    default_model: str = "gemini"
    vision_model: str = "gemini"
    retries: int = 3
    proxy_timeout_ms: int = 300000
    loop_interval_ms: int = 4000
    human_delay_min: int = 200
    human_delay_max: int = 800
    log_level: str = "INFO"
    log_history_limit: int = 100
    instant_mode: bool = False
    think_before_answer: bool = True
    idle_threshold: int = 10
    error_policy: str = "retry"
    web_search: bool = False
    start_url: Optional[str] = None
    headless: bool = False
    control_secret: Optional[str] = None

    def __post_init__(self):
        if self.error_policy not in ERROR_POLICIES:
            raise ValueError(f"error_policy must be one of {ERROR_POLICIES}: {self.error_policy!r}")
        if self.retries < 1:
            raise ValueError(f"retries must be >= 1: {self.retries}")
        if self.idle_threshold < 1:
            raise ValueError(f"idle_threshold must be >= 1: {self.idle_threshold}")

    @classmethod
    def from_env(cls) -> "SolverConfig":
        """Build a config from HW_SOLVER_* environment variables"""
        defaults = cls()
        return cls(
            proxy_url=_env("PROXY_URL", defaults.proxy_url),
            api_key=_env("API_KEY", defaults.api_key),
            default_model=_env("DEFAULT_MODEL", defaults.default_model),
            vision_model=_env("VISION_MODEL", defaults.vision_model),
            retries=_env_int("RETRIES", defaults.retries),
            proxy_timeout_ms=_env_int("PROXY_TIMEOUT_MS", defaults.proxy_timeout_ms),
            loop_interval_ms=_env_int("LOOP_INTERVAL_MS", defaults.loop_interval_ms),
            human_delay_min=_env_int("HUMAN_DELAY_MIN", defaults.human_delay_min),
            human_delay_max=_env_int("HUMAN_DELAY_MAX", defaults.human_delay_max),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            log_history_limit=_env_int("LOG_HISTORY_LIMIT", defaults.log_history_limit),
            instant_mode=_env_bool("INSTANT_MODE", defaults.instant_mode),
            think_before_answer=_env_bool("THINK_BEFORE_ANSWER", defaults.think_before_answer),
            idle_threshold=_env_int("IDLE_THRESHOLD", defaults.idle_threshold),
            error_policy=_env("ERROR_POLICY", defaults.error_policy).lower(),
            web_search=_env_bool("WEB_SEARCH", defaults.web_search),
            start_url=_env("START_URL"),
            headless=_env_bool("HEADLESS", defaults.headless),
            control_secret=_env("CONTROL_SECRET"),
        )

    @property
    def loop_interval(self) -> float:
        """Base scheduler delay in seconds"""
        return self.loop_interval_ms / 1000

    @property
    def proxy_timeout(self) -> float:
        return self.proxy_timeout_ms / 1000

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        # Never echo credentials
        data["api_key"] = "****" if self.api_key else ""
        data["control_secret"] = "****" if self.control_secret else None
        return data
