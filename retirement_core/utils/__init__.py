from __future__ import annotations
from pathlib import Path
import logging
import os


class PlannerConfigError(RuntimeError):
    """Raised when a configuration file exists but cannot be used."""


# Small logger so modules can do: from retirement_core.utils import log
def get_logger(name: str = "retirement_core"):
    lvl = os.getenv("LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger(name)
    if not logger.handlers:
        logging.basicConfig(level=getattr(logging, lvl, logging.INFO),
                            format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return logger

log = get_logger()

def _find_project_root() -> Path:
    # start at this file and walk up looking for a 'config' directory
    here = Path(__file__).resolve()
    for parent in [here.parent] + list(here.parents):
        if (parent / "config" / "config.yaml").exists():
            return parent
    # fallback: assume two levels up (project root)
    return here.parents[2]

def config_path(name: str) -> Path:
    """Path of a file under the project's config/ directory."""
    return _find_project_root() / "config" / name

def load_yaml(path: str | Path) -> dict:
    import yaml  # lazy import

    with open(path, "r") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PlannerConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data



__all__ = ["PlannerConfigError", "get_logger", "log", "config_path", "load_yaml"]
