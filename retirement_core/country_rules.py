"""
Country Rules - per-country tax, pension and payroll assumptions

Loads config/countries.yaml into dataclasses. Values are planning heuristics
(flat pension tax, flat take-home fraction), not a tax model.
"""

from __future__ import annotations
import yaml
from pathlib import Path
from typing import Dict, Optional, Tuple
from dataclasses import dataclass
from functools import lru_cache
import logging

from .utils import PlannerConfigError

_log = logging.getLogger(__name__)

DEFAULT_COUNTRY_KEY = "default"


@dataclass(frozen=True)
class CountryRules:
    """Rules for a single country."""
    key: str
    name: str
    currency: str
    aliases: Tuple[str, ...]
    pension_tax: float
    social_security: float
    retirement_age: int
    take_home_fraction: float
    high_income_take_home_fraction: float
    high_income_threshold: float
    pension_employee_rate: Optional[float]
    pension_employer_rate: Optional[float]
    training_fund_employee_rate: Optional[float]
    training_fund_employer_rate: Optional[float]
    training_fund_salary_ceiling: Optional[float]
    tax_advantage_bonus: float

    def take_home_for(self, monthly_net: float) -> float:
        """Take-home fraction that applies at a given monthly net salary."""
        if monthly_net > self.high_income_threshold:
            return self.high_income_take_home_fraction
        return self.take_home_fraction


def get_countries_path() -> Path:
    """Get path to countries.yaml config file."""
    candidates = [
        Path(__file__).parent.parent / "config" / "countries.yaml",
        Path("config") / "countries.yaml",
        Path("../config") / "countries.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p

    raise FileNotFoundError(
        "countries.yaml not found. Searched: " + ", ".join(str(c) for c in candidates)
    )


def _opt(data: dict, key: str) -> Optional[float]:
    value = data.get(key)
    return None if value is None else float(value)


@lru_cache(maxsize=1)
def load_country_rules() -> Dict[str, CountryRules]:
    """
    Load all country rules.

    Returns:
        Dict mapping country key -> CountryRules (always includes "default")
    """
    config_path = get_countries_path()

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    countries = {}
    for key, data in config.get('countries', {}).items():
        countries[key] = CountryRules(
            key=key,
            name=data.get('name', key.title()),
            currency=data.get('currency', 'ILS'),
            aliases=tuple(str(a).lower() for a in data.get('aliases', [])),
            pension_tax=float(data['pension_tax']),
            social_security=float(data.get('social_security', 0)),
            retirement_age=int(data.get('retirement_age', 67)),
            take_home_fraction=float(data['take_home_fraction']),
            high_income_take_home_fraction=float(
                data.get('high_income_take_home_fraction', data['take_home_fraction'])
            ),
            high_income_threshold=float(data.get('high_income_threshold', 15000)),
            pension_employee_rate=_opt(data, 'pension_employee_rate'),
            pension_employer_rate=_opt(data, 'pension_employer_rate'),
            training_fund_employee_rate=_opt(data, 'training_fund_employee_rate'),
            training_fund_employer_rate=_opt(data, 'training_fund_employer_rate'),
            training_fund_salary_ceiling=_opt(data, 'training_fund_salary_ceiling'),
            tax_advantage_bonus=float(data.get('tax_advantage_bonus', 0)),
        )

    if DEFAULT_COUNTRY_KEY not in countries:
        raise PlannerConfigError(f"{config_path} has no '{DEFAULT_COUNTRY_KEY}' country entry")
    return countries


def get_country_rules(country: Optional[str]) -> CountryRules:
    """
    Look up rules by key or alias, case-insensitively.

    Unknown or empty countries resolve to the "default" entry.

    Example:
        >>> get_country_rules("IL").name
        'Israel'
    """
    countries = load_country_rules()
    needle = str(country or "").strip().lower()
    if needle in countries:
        return countries[needle]
    for rules in countries.values():
        if needle and needle in rules.aliases:
            return rules
    if needle:
        _log.debug("Unknown country %r; using default rules", country)
    return countries[DEFAULT_COUNTRY_KEY]


__all__ = ["CountryRules", "get_countries_path", "load_country_rules", "get_country_rules"]
