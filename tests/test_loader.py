"""Tests for loading candidate change batches from JSON."""

import json

import pytest

from changegate.loader import load_changes
from changegate.schemas.changes import RiskLevel


class TestLoadChanges:
    def test_bare_list(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps([
            {"file_path": "a.py", "proposed_content": "A = 1\n", "risk_tier": "high"},
        ]))
        changes = load_changes(path)
        assert len(changes) == 1
        assert changes[0].risk_tier == RiskLevel.HIGH
        assert changes[0].is_creation is True

    def test_wrapped_object(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"changes": [
            {
                "id": "c1",
                "file_path": "a.py",
                "original_content": "A = 0\n",
                "proposed_content": "A = 1\n",
                "description": "bump",
                "suggested_tests": ["test_a"],
            },
        ]}))
        change = load_changes(path)[0]
        assert change.id == "c1"
        assert change.original_content == "A = 0\n"
        assert change.suggested_tests == ["test_a"]
        assert change.risk_tier == RiskLevel.MEDIUM

    def test_order_preserved(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps([
            {"file_path": f"m{i}.py", "proposed_content": ""} for i in range(5)
        ]))
        assert [c.file_path for c in load_changes(path)] == [f"m{i}.py" for i in range(5)]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_changes(tmp_path / "nope.json")

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("[{")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_changes(path)

    def test_missing_changes_key(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"items": []}))
        with pytest.raises(ValueError, match="No list of changes"):
            load_changes(path)

    def test_invalid_change(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps([{"file_path": "a.py"}]))
        with pytest.raises(ValueError, match="Invalid change"):
            load_changes(path)

    def test_unknown_risk_tier(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps([
            {"file_path": "a.py", "proposed_content": "", "risk_tier": "extreme"},
        ]))
        with pytest.raises(ValueError):
            load_changes(path)
