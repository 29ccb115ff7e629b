from importlib.metadata import version, PackageNotFoundError
__all__ = ["inputs", "scenarios", "projection", "health_score", "stress", "country_rules", "utils"]
try:
    __version__ = version("retirement_planner")
except PackageNotFoundError:
    __version__ = "0.0.1"

from .inputs import CanonicalInputs, PartnerInputs, normalize_inputs, validate_financial_inputs
from .scenarios import MarketScenario, ReturnAssumptions, resolve_returns
from .projection import ProjectionResult, project_retirement
from .health_score import HealthScore, score_financial_health
from .stress import STRESS_SCENARIOS, StressScenario, StressTestResult, run_stress_test
from .utils.currency import convert_currency, format_currency

__all__ += [
    "CanonicalInputs",
    "PartnerInputs",
    "normalize_inputs",
    "validate_financial_inputs",
    "MarketScenario",
    "ReturnAssumptions",
    "resolve_returns",
    "ProjectionResult",
    "project_retirement",
    "HealthScore",
    "score_financial_health",
    "STRESS_SCENARIOS",
    "StressScenario",
    "StressTestResult",
    "run_stress_test",
    "convert_currency",
    "format_currency",
]
