from dotenv import dotenv_values
import copy
import os
from pathlib import Path
from functools import lru_cache

from . import config_path, load_yaml

def load_env_once(dotenv_path: str | None = None):
    """
    Load .env without relying on find_dotenv() to avoid assertion errors in -c / REPL contexts.
    Existing environment variables always win over values from the file.
    """
    dp = dotenv_path or ".env"
    if not os.environ.get("_PLANNER_ENV_LOADED", ""):
        if Path(dp).exists():
            env = dotenv_values(dp)
            for k, v in env.items():
                if v is not None and k not in os.environ:
                    os.environ[k] = str(v)
        os.environ["_PLANNER_ENV_LOADED"] = "1"

# === Defaults used when config.yaml is missing or partial =====================
DEFAULT_CONFIG = {
    "defaults": {
        "return_pct": 7.0,
        "pension_employee_rate": 7.0,
        "pension_employer_rate": 10.5,
        "training_fund_employee_rate": 2.5,
        "training_fund_employer_rate": 7.5,
        "effective_tax_rate": 25.0,
        "portfolio_tax_rate": 25.0,
        "inflation_rate": 2.5,
        "target_replacement_rate": 70.0,
        "rental_yield": 3.0,
        "salary_growth_rate": 0.0,
        "current_age": 30,
        "retirement_age": 67,
        "country": "israel",
        "scenario": "moderate",
    },
    "withdrawal_rates": {
        "pension": 4.0,
        "training_fund": 5.0,
        "personal_portfolio": 4.0,
        "real_estate": 4.0,
        "crypto": 4.0,
    },
    "readiness": {
        "thresholds": [[1.2, 100], [1.0, 90], [0.8, 70], [0.6, 50], [0.4, 30]],
        "floor_score": 20,
        "no_target_score": 50,
    },
    "health_score": {
        "weights": {
            "savings_rate": 0.35,
            "retirement_readiness": 0.30,
            "debt_management": 0.20,
            "expense_ratio": 0.15,
        },
        "recommendation_threshold": 70,
        "max_recommendations": 3,
    },
}

def load_config(config_path_: str | Path | None = None) -> dict:
    """Load YAML config safely, backfilling any section or key that is missing."""
    p = Path(config_path_) if config_path_ else config_path("config.yaml")
    cfg = load_yaml(p) if p.exists() else {}
    for section, values in DEFAULT_CONFIG.items():
        cfg.setdefault(section, {})
        for key, value in values.items():
            cfg[section].setdefault(key, copy.deepcopy(value))
    return cfg

@lru_cache(maxsize=1)
def get_planner_config() -> dict:
    """Process-wide config; honours PLANNER_CONFIG for an alternative file."""
    load_env_once()
    return load_config(os.getenv("PLANNER_CONFIG") or None)
# ==============================================================================

def _truthy(value, default: bool = False) -> bool:
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in {"1", "true", "yes", "on"}

def env_flag(name: str, default: bool = False) -> bool:
    return _truthy(os.getenv(name), default)

@lru_cache(maxsize=1)
def is_debug_mode() -> bool:
    """True when PLANNER_DEBUG is set; enables fallback tracing in the normalizer."""
    load_env_once()
    return env_flag("PLANNER_DEBUG", False)


__all__ = ["load_env_once", "DEFAULT_CONFIG", "load_config", "get_planner_config", "env_flag", "is_debug_mode"]
