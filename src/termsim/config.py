"""Runtime settings from the environment.

``.env.local`` at the project root is loaded first (existing environment
variables win). Malformed numbers fall back to their defaults.

Environment Variables:
    TERMSIM_BACKEND_URL          Assistant backend base URL (unset = offline)
    TERMSIM_API_KEY              Bearer token for the backend
    TERMSIM_STORE_PATH           Session file (default ~/.termsim/session.json)
    TERMSIM_THEME                Theme name (default "default")
    TERMSIM_FRAME_MS             Frame interval (default 80)
    TERMSIM_SCAN_MIN_MS          Minimum scan duration (default 1500)
    TERMSIM_SCAN_ASSUMED_MAX_MS  Scan progress ceiling (default 10000)
    TERMSIM_SCAN_TIMEOUT_MS      Scan request timeout (unset = none)
    TERMSIM_HELP_THRESHOLD       Misses before the assistant is offered (default 3)
    TERMSIM_HOSTNAME             Simulated hostname (default prod-srv-42)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

from termsim.session.store import get_default_store_path

logger = logging.getLogger(__name__)


def _find_project_root() -> Path | None:
    """Walk up from this file to the directory holding pyproject.toml."""
    current = Path(__file__).parent
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


@lru_cache(maxsize=1)
def load_env() -> None:
    """Load .env.local once."""
    project_root = _find_project_root()
    if project_root:
        env_local = project_root / ".env.local"
        if env_local.exists():
            load_dotenv(env_local)


def _number(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r", name, raw)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r", name, raw)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    backend_url: str | None = None
    api_key: str | None = None
    store_path: Path = get_default_store_path()
    theme: str = "default"
    frame_ms: float = 80
    scan_min_ms: float = 1500
    scan_assumed_max_ms: float = 10000
    scan_timeout_ms: float | None = None
    help_threshold: int = 3
    hostname: str = "prod-srv-42"

    @classmethod
    def from_env(cls) -> Settings:
        load_env()
        defaults = cls()
        store_path = os.getenv("TERMSIM_STORE_PATH")
        return cls(
            backend_url=os.getenv("TERMSIM_BACKEND_URL") or None,
            api_key=os.getenv("TERMSIM_API_KEY") or None,
            store_path=Path(store_path).expanduser() if store_path else defaults.store_path,
            theme=os.getenv("TERMSIM_THEME") or defaults.theme,
            frame_ms=_number("TERMSIM_FRAME_MS", defaults.frame_ms) or defaults.frame_ms,
            scan_min_ms=_number("TERMSIM_SCAN_MIN_MS", defaults.scan_min_ms),  # type: ignore[arg-type]
            scan_assumed_max_ms=_number(  # type: ignore[arg-type]
                "TERMSIM_SCAN_ASSUMED_MAX_MS", defaults.scan_assumed_max_ms
            ),
            scan_timeout_ms=_number("TERMSIM_SCAN_TIMEOUT_MS", None),
            help_threshold=int(
                _number("TERMSIM_HELP_THRESHOLD", defaults.help_threshold)  # type: ignore[arg-type]
            )
            or defaults.help_threshold,
            hostname=os.getenv("TERMSIM_HOSTNAME") or defaults.hostname,
        )
