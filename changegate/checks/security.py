"""Security pattern scan over proposed content.

Each matched pattern contributes one issue; the score drops by the
configured penalty per issue.
"""

from __future__ import annotations

import re

from changegate.checks.base import SafetyCheck
from changegate.schemas.changes import CandidateChange, SafetyCheckResult

# (pattern, issue): one issue per pattern regardless of match count
SECURITY_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(?<![\w.])eval\s*\("), "Use of eval() detected"),
    (re.compile(r"(?<![\w.])exec\s*\("), "Use of exec() detected"),
    (re.compile(r"(?<![\w.])compile\s*\(\s*[rbf]?[\"']"), "compile() of a source string detected"),
    (re.compile(r"\bnew\s+Function\s*\("), "Dynamic Function constructor detected"),
    (re.compile(r"\.innerHTML\s*=(?!=)"), "Direct innerHTML assignment (XSS risk)"),
    (re.compile(r"dangerouslySetInnerHTML"), "dangerouslySetInnerHTML usage (XSS risk)"),
    (re.compile(r"\bmark_safe\s*\(|\bMarkup\s*\(\s*f[\"']"), "Unescaped markup marked safe (XSS risk)"),
    (re.compile(r"\bdocument\.write(ln)?\s*\("), "Use of document.write (global write side effect)"),
    (
        re.compile(r"\{[^{}\n]*(os\.environ|os\.getenv|process\.env)[^{}\n]*\}"),
        "Environment variable interpolated into output",
    ),
    (
        re.compile(r"\bprint\s*\([^)\n]*(os\.environ|os\.getenv)"),
        "Environment variable printed to output",
    ),
    (re.compile(r"\bglobals\(\)\s*\[[^\]]+\]\s*=(?!=)"), "Write to module globals()"),
    (re.compile(r"\bbuiltins\.\w+\s*=(?!=)"), "Builtin overwritten at runtime"),
    (
        re.compile(
            r"(?i)\b(password|passwd|secret|api_key|apikey|access_key|auth_token|token)\b"
            r"\s*[:=]\s*[\"'][^\"'\s]{4,}[\"']"
        ),
        "Hard-coded secret detected",
    ),
]


class SecurityCheck(SafetyCheck):
    """Flags dangerous constructs in the proposed content."""

    name = "security"

    def __init__(self, penalty: float = 25.0) -> None:
        self._penalty = penalty

    def run(self, change: CandidateChange) -> SafetyCheckResult:
        issues = [
            issue for pattern, issue in SECURITY_PATTERNS
            if pattern.search(change.proposed_content)
        ]
        score = max(0.0, 100.0 - self._penalty * len(issues))
        recommendations = (
            ["Review and fix security issues", "Consider a security audit"]
            if issues else []
        )
        return self._result(not issues, score, issues, recommendations)
