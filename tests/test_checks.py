"""Tests for the built-in safety checks and the registry."""

from __future__ import annotations

import pytest

from changegate.checks import (
    ApiCompatibilityCheck,
    PerformanceCheck,
    SafetyCheck,
    SafetyCheckRegistry,
    SecurityCheck,
    SyntaxCheck,
    default_checks,
)
from changegate.checks.compatibility import public_symbols
from changegate.checks.performance import detect_patterns
from changegate.errors import CheckExecutionError
from changegate.schemas.changes import CandidateChange
from changegate.schemas.config import PolicyConfig


def _change(content: str, path: str = "mod.py", original: str | None = None) -> CandidateChange:
    return CandidateChange(
        file_path=path, original_content=original, proposed_content=content,
    )


class TestSyntaxCheck:
    def test_valid_python(self):
        result = SyntaxCheck().run(_change("def f():\n    return 1\n"))
        assert result.passed is True
        assert result.score == 100
        assert result.check_name == "syntax"

    def test_invalid_python(self):
        result = SyntaxCheck().run(_change("def f(:\n"))
        assert result.passed is False
        assert result.score == 0
        assert "Syntax error" in result.issues[0]

    def test_invalid_json(self):
        result = SyntaxCheck().run(_change('{"a": }', path="data.json"))
        assert result.passed is False

    def test_valid_toml(self):
        result = SyntaxCheck().run(_change('[tool]\nname = "x"\n', path="pyproject.toml"))
        assert result.passed is True

    def test_invalid_toml(self):
        result = SyntaxCheck().run(_change("[tool\n", path="config.toml"))
        assert result.passed is False
        assert result.score == 0

    def test_unknown_suffix_passes_with_recommendation(self):
        result = SyntaxCheck().run(_change("anything {", path="notes.md"))
        assert result.passed is True
        assert result.score == 100
        assert any("review manually" in r for r in result.recommendations)


class TestSecurityCheck:
    def test_clean_content(self):
        result = SecurityCheck().run(_change("x = 1\n"))
        assert result.passed is True
        assert result.score == 100
        assert result.issues == []

    def test_hard_coded_secret_scores_75(self):
        result = SecurityCheck().run(_change('API_KEY = "sk-live-123456"\n'))
        assert result.passed is False
        assert result.issues == ["Hard-coded secret detected"]
        assert result.score == 75

    def test_eval_detected(self):
        result = SecurityCheck().run(_change("value = eval(user_input)\n"))
        assert "Use of eval() detected" in result.issues

    def test_method_named_eval_not_flagged(self):
        result = SecurityCheck().run(_change("model.eval()\n"))
        assert result.issues == []

    def test_compile_of_string_detected(self):
        result = SecurityCheck().run(_change("code = compile('x + 1', '<s>', 'eval')\n"))
        assert "compile() of a source string detected" in result.issues

    def test_regex_compile_not_flagged(self):
        result = SecurityCheck().run(_change('PATTERN = re.compile(r"\\d+")\n'))
        assert result.issues == []

    def test_markup_injection(self):
        result = SecurityCheck().run(_change("el.innerHTML = data;\n", path="app.js"))
        assert "Direct innerHTML assignment (XSS risk)" in result.issues

    def test_env_interpolation(self):
        result = SecurityCheck().run(_change('print(f"token={os.environ[\'TOKEN\']}")\n'))
        assert "Environment variable interpolated into output" in result.issues

    def test_score_floors_at_zero(self):
        content = (
            "eval(a)\nexec(b)\ndocument.write(c)\n"
            "password = 'hunter22'\nglobals()['x'] = 1\n"
        )
        result = SecurityCheck().run(_change(content))
        assert len(result.issues) == 5
        assert result.score == 0

    def test_penalty_is_configurable(self):
        result = SecurityCheck(penalty=10).run(_change("eval(a)\n"))
        assert result.score == 90


class TestApiCompatibilityCheck:
    def test_no_original(self):
        result = ApiCompatibilityCheck().run(_change("def f():\n    pass\n"))
        assert result.passed is True
        assert result.score == 100

    def test_new_deletion_flagged(self):
        result = ApiCompatibilityCheck().run(_change(
            "del obj.attr\n", original="obj.attr = 1\n",
        ))
        assert result.passed is False
        assert result.score == 50
        assert "Attribute deletion detected" in result.issues

    def test_existing_deletion_not_flagged(self):
        content = "items.remove()\n"
        result = ApiCompatibilityCheck().run(_change(content, original=content))
        assert result.passed is True

    def test_removed_public_function(self):
        original = "def keep():\n    pass\n\ndef gone():\n    pass\n"
        result = ApiCompatibilityCheck().run(_change("def keep():\n    pass\n", original=original))
        assert result.issues == ["Public symbol removed: gone"]

    def test_removed_private_function_ignored(self):
        original = "def keep():\n    pass\n\ndef _helper():\n    pass\n"
        result = ApiCompatibilityCheck().run(_change("def keep():\n    pass\n", original=original))
        assert result.passed is True

    def test_removed_method(self):
        original = "class A:\n    def run(self):\n        pass\n"
        result = ApiCompatibilityCheck().run(_change("class A:\n    pass\n", original=original))
        assert "Public symbol removed: A.run" in result.issues

    def test_public_symbols_unparseable(self):
        assert public_symbols("def (") is None


class TestPerformanceCheck:
    def test_new_nested_loop(self):
        content = "for a in x:\n    for b in y:\n        pass\n"
        result = PerformanceCheck().run(_change(content, original="pass\n"))
        assert result.issues == ["Nested iteration introduced"]
        assert result.score == 80
        assert result.passed is True

    def test_existing_nested_loop_not_flagged(self):
        content = "for a in x:\n    for b in y:\n        pass\n"
        result = PerformanceCheck().run(_change(content, original=content))
        assert result.issues == []
        assert result.score == 100

    def test_await_in_loop(self):
        content = "async def f(xs):\n    for x in xs:\n        await fetch(x)\n"
        assert "unbatched_await" in detect_patterns(content, python=True)

    def test_forever_sleep_loop(self):
        content = "import time\nwhile True:\n    time.sleep(1)\n"
        assert "unbounded_timer" in detect_patterns(content, python=True)

    def test_js_timer(self):
        assert "unbounded_timer" in detect_patterns("setInterval(tick, 100);", python=False)

    def test_multiple_issues_fail_and_floor(self):
        content = (
            "import time\n"
            "async def f(xs, ys):\n"
            "    for x in xs:\n"
            "        for y in ys:\n"
            "            await g(x, y)\n"
            "    while True:\n"
            "        time.sleep(1)\n"
        )
        result = PerformanceCheck(penalty=40, floor=30).run(_change(content))
        assert len(result.issues) == 3
        assert result.passed is False
        assert result.score == 30


class _Boom(SafetyCheck):
    name = "boom"

    def run(self, change):
        raise RuntimeError("kaboom")


class _Refuses(SafetyCheck):
    name = "refuses"

    def run(self, change):
        raise CheckExecutionError(self.name, "parser unavailable")


class TestSafetyCheckRegistry:
    def test_default_registry_runs_all_checks(self):
        registry = SafetyCheckRegistry()
        results = registry.run_all(_change("x = 1\n"))
        assert len(results) == 4
        assert [r.check_name for r in results] == [
            "syntax", "security", "api_compatibility", "performance_impact",
        ]
        assert all(r.score == 100 for r in results)

    def test_failing_check_becomes_result(self):
        registry = SafetyCheckRegistry([SyntaxCheck(), _Boom()])
        results = registry.run_all(_change("x = 1\n"))
        assert len(results) == 2
        boom = results[1]
        assert boom.passed is False
        assert boom.score == 0
        assert boom.issues == ["check execution failed"]
        assert "kaboom" in boom.recommendations[0]

    def test_check_execution_error_recorded(self):
        results = SafetyCheckRegistry([_Refuses()]).run_all(_change("x = 1\n"))
        assert results[0].issues == ["check execution failed"]
        assert "parser unavailable" in results[0].recommendations[0]

    def test_register_extends_checks(self):
        registry = SafetyCheckRegistry([])
        registry.register(SyntaxCheck())
        assert len(registry) == 1

    def test_default_checks_use_policy(self):
        checks = default_checks(PolicyConfig(security_penalty=50))
        security = next(c for c in checks if c.name == "security")
        assert security.run(_change("eval(a)\n")).score == 50

    @pytest.mark.parametrize("content", ["", "\n", "# comment only\n"])
    def test_trivial_content(self, content):
        results = SafetyCheckRegistry().run_all(_change(content))
        assert all(r.passed for r in results)
