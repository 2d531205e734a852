"""
config.py - Runtime settings for the flame-graph viewer.

Defaults can be overridden from the environment, then from CLI flags:

    CHTIMELINE_DIRECTION=bottom-up
    CHTIMELINE_LOG_FILE=/tmp/chtimeline.log
    CHTIMELINE_LOG_LEVEL=DEBUG
    CHTIMELINE_DOUBLE_CLICK_MS=400
"""
import os
from dataclasses import dataclass, field, replace

from .layout import DIRECTIONS, TOP_DOWN


def _default_log_file() -> str:
    return os.path.join(os.path.expanduser("~"), ".clickhouse-timeline", "chtimeline.log")


@dataclass(frozen=True)
class Settings:
    direction: str = TOP_DOWN
    source_page: str = "main"
    double_click_seconds: float = 0.5
    poll_ms: int = 100             # UI input poll; also how often worker results are picked up
    log_file: str = field(default_factory=_default_log_file)
    log_level: str = "INFO"

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValueError(f"direction must be one of {DIRECTIONS}, got {self.direction!r}")
        if self.double_click_seconds < 0:
            raise ValueError("double_click_seconds must be >= 0")

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        kw = {}
        if env.get("CHTIMELINE_DIRECTION"):
            kw["direction"] = env["CHTIMELINE_DIRECTION"]
        if env.get("CHTIMELINE_LOG_FILE"):
            kw["log_file"] = env["CHTIMELINE_LOG_FILE"]
        if env.get("CHTIMELINE_LOG_LEVEL"):
            kw["log_level"] = env["CHTIMELINE_LOG_LEVEL"].upper()
        if env.get("CHTIMELINE_DOUBLE_CLICK_MS"):
            raw = env["CHTIMELINE_DOUBLE_CLICK_MS"]
            try:
                kw["double_click_seconds"] = int(raw) / 1000.0
            except ValueError:
                raise ValueError(f"CHTIMELINE_DOUBLE_CLICK_MS must be an integer, got {raw!r}") from None
        return cls(**kw)

    def override(self, **changes) -> "Settings":
        """Copy with the non-None `changes` applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
