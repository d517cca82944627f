# connect4/config.py
from dataclasses import dataclass, field
from typing import Optional
import logging
import os
import tomllib

from connect4.errors import ConfigError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Defaults (heuristic points)
EVAL_WEIGHTS = {
    "center": 3,
    "win": 100000,
    "three": 100,
    "two": 10,
}


@dataclass
class BoardConfig:
    rows: int = 6
    cols: int = 7


@dataclass
class SearchConfig:
    depth: int = 9
    accelerated_depth: int = 5  # round trips are expensive, search shallower
    use_alpha_beta: bool = True
    use_accelerator: bool = False
    depth_limit: int = 10  # deepest search a REST client may request

    def effective_depth(self, use_accelerator: Optional[bool] = None) -> int:
        if use_accelerator is None:
            use_accelerator = self.use_accelerator
        return self.accelerated_depth if use_accelerator else self.depth


@dataclass
class EvalConfig:
    center_weight: int = EVAL_WEIGHTS["center"]
    win_weight: int = EVAL_WEIGHTS["win"]
    three_weight: int = EVAL_WEIGHTS["three"]
    two_weight: int = EVAL_WEIGHTS["two"]


@dataclass
class AcceleratorConfig:
    link: str = "simulated"  # "simulated" or "socket"
    host: str = "127.0.0.1"
    port: int = 9750
    timeout_ms: int = 5000
    max_boards: int = 7
    latency_ms: int = 0  # artificial delay of the simulated peer


@dataclass
class UIConfig:
    engine_name: str = "Connect4 Engine"
    api_host: str = "127.0.0.1"
    api_port: int = 8000


@dataclass
class Config:
    board: BoardConfig = field(default_factory=BoardConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    eval: EvalConfig = field(default_factory=EvalConfig)
    accelerator: AcceleratorConfig = field(default_factory=AcceleratorConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    log_level: str = "INFO"

    def validate(self) -> "Config":
        if self.board.rows < 4 or self.board.cols < 4:
            raise ConfigError(f"Board must be at least 4x4, got {self.board.rows}x{self.board.cols}")
        if self.search.depth < 0 or self.search.accelerated_depth < 0:
            raise ConfigError("Search depth cannot be negative")
        if max(self.search.depth, self.search.accelerated_depth) > self.search.depth_limit:
            raise ConfigError(f"Search depth cannot exceed depth_limit {self.search.depth_limit}")
        if not 1 <= self.ui.api_port <= 65535:
            raise ConfigError(f"Invalid API port {self.ui.api_port}")
        if self.accelerator.timeout_ms <= 0:
            raise ConfigError("Accelerator timeout must be positive")
        if not 1 <= self.accelerator.max_boards <= 7:
            raise ConfigError("Accelerator batch capacity must be within 1..7")
        if self.accelerator.latency_ms < 0:
            raise ConfigError("Simulated latency cannot be negative")
        return self

    @staticmethod
    def load_from_toml(path: str = "config.toml") -> "Config":
        cfg = Config()
        if not os.path.exists(path):
            return cfg
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        for section in ("board", "search", "eval", "accelerator", "ui"):
            if section not in raw:
                continue
            target = getattr(cfg, section)
            for k, v in raw[section].items():
                if hasattr(target, k):
                    setattr(target, k, v)
        if "log_level" in raw:
            cfg.log_level = raw["log_level"]
        return cfg.validate()


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(cfg: Config, environ=None) -> Config:
    environ = os.environ if environ is None else environ
    depth = environ.get("CONNECT4_SEARCH_DEPTH")
    if depth:
        try:
            cfg.search.depth = int(depth)
        except ValueError:
            raise ConfigError(f"CONNECT4_SEARCH_DEPTH must be an integer, got {depth!r}")
    accel = environ.get("CONNECT4_USE_ACCELERATOR")
    if accel:
        cfg.search.use_accelerator = _env_flag(accel)
    level = environ.get("CONNECT4_LOG_LEVEL")
    if level:
        cfg.log_level = level.upper()
    return cfg.validate()


def configure_logging(level: str = "INFO"):
    """Set up root logging once for the command-line and server entry points."""
    numeric = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        raise ConfigError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)


# single globally importable config instance
CONFIG = apply_env_overrides(
    Config.load_from_toml(os.environ.get("CONNECT4_CONFIG_TOML", "config.toml"))
)
