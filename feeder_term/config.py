"""
Transport configuration from a .env file / environment.

  FEEDER_PORT=/dev/ttyUSB0
  FEEDER_BAUD=115200
  FEEDER_TIMEOUT=0.1
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"


@dataclass
class TransportConfig:
    port: str | None = None
    baudrate: int = 115200
    timeout_s: float = 0.1


def _env_number(name: str, cast, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        raise ValueError(f"{name} is not a valid {cast.__name__}: {raw!r}") from None


def load_transport_config(env_path: Path | str | None = None) -> TransportConfig:
    """Load .env (if present) and build a TransportConfig from FEEDER_* variables."""
    env_path = Path(env_path) if env_path is not None else DEFAULT_ENV_PATH
    if env_path.exists():
        load_dotenv(env_path, override=True)
        log.info(".env loaded from %s", env_path)
    else:
        log.warning(".env not found at %s", env_path)

    defaults = TransportConfig()
    return TransportConfig(
        port=os.environ.get("FEEDER_PORT") or None,
        baudrate=_env_number("FEEDER_BAUD", int, defaults.baudrate),
        timeout_s=_env_number("FEEDER_TIMEOUT", float, defaults.timeout_s),
    )
