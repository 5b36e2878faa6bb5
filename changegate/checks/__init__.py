"""Per-change safety checks and the registry that runs them."""

from changegate.checks.base import SafetyCheck
from changegate.checks.compatibility import ApiCompatibilityCheck
from changegate.checks.performance import PerformanceCheck
from changegate.checks.registry import SafetyCheckRegistry, default_checks
from changegate.checks.security import SecurityCheck
from changegate.checks.syntax import SyntaxCheck

__all__ = [
    "ApiCompatibilityCheck",
    "PerformanceCheck",
    "SafetyCheck",
    "SafetyCheckRegistry",
    "SecurityCheck",
    "SyntaxCheck",
    "default_checks",
]
