"""Unit tests for jarvis_hooks.services.rules.

Tests cover:
- Parsing mapping-style and list-style skill rules files
- Rejection of malformed rules documents
- RuleStore source precedence (project, global, built-in)
- PromotionPolicy threshold and confidence
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from jarvis_hooks.config import Settings
from jarvis_hooks.core.errors import RuleLoadError
from jarvis_hooks.core.models import Priority
from jarvis_hooks.services.rules import (
    DEFAULT_SKILL_RULES,
    PromotionPolicy,
    RuleStore,
    load_skill_rules_file,
    parse_skill_rules,
)

RULES_PATH = Path("skill-rules.json")


def _write_rules(path: Path, data: object) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# =============================================================================
# Parsing
# =============================================================================


@pytest.mark.unit
class TestParseSkillRules:
    def test_mapping_format(self) -> None:
        rules = parse_skill_rules(
            {"skills": {"testing": {"keywords": ["test"], "priority": "critical"}}},
            RULES_PATH,
        )
        assert len(rules) == 1
        assert rules[0].skill_id == "testing"
        assert rules[0].priority is Priority.CRITICAL

    def test_prompt_triggers_keywords(self) -> None:
        rules = parse_skill_rules(
            {"skills": {"debugging": {"promptTriggers": {"keywords": ["debug"]}}}},
            RULES_PATH,
        )
        assert rules[0].keywords == ("debug",)
        assert rules[0].priority is Priority.MEDIUM

    def test_list_format(self) -> None:
        rules = parse_skill_rules(
            [{"skill_id": "git-expert", "keywords": ["commit"], "priority": "HIGH"}],
            RULES_PATH,
        )
        assert rules[0].skill_id == "git-expert"
        assert rules[0].priority is Priority.HIGH

    @pytest.mark.parametrize(
        "raw",
        [
            "just a string",
            {"skills": ["not", "a", "mapping"]},
            {"skills": {"x": {"keywords": "test"}}},
            {"skills": {"x": {"keywords": ["test"], "priority": "urgent"}}},
            [{"keywords": ["no id"]}],
        ],
    )
    def test_malformed_rules_rejected(self, raw: object) -> None:
        with pytest.raises(RuleLoadError):
            parse_skill_rules(raw, RULES_PATH)

    def test_invalid_json_file(self, tmp_path: Path) -> None:
        path = tmp_path / "skill-rules.json"
        path.write_text("{oops", encoding="utf-8")
        with pytest.raises(RuleLoadError, match="invalid JSON"):
            load_skill_rules_file(path)


# =============================================================================
# RuleStore
# =============================================================================


@pytest.mark.unit
class TestRuleStore:
    def test_defaults_when_no_files(self, tmp_path: Path) -> None:
        store = RuleStore(Settings(_env_file=None), project_root=tmp_path)
        assert store.skill_rules() == DEFAULT_SKILL_RULES

    def test_project_rules_win_over_global(self, tmp_path: Path) -> None:
        global_path = _write_rules(
            tmp_path / "global.json", {"skills": {"global-skill": {"keywords": ["x"]}}}
        )
        _write_rules(
            tmp_path / "project" / ".claude" / "skills" / "skill-rules.json",
            {"skills": {"project-skill": {"keywords": ["x"]}}},
        )
        store = RuleStore(
            Settings(_env_file=None, skill_rules_path=global_path),
            project_root=tmp_path / "project",
        )
        assert [r.skill_id for r in store.skill_rules()] == ["project-skill"]

    def test_global_rules_used_without_project_file(self, tmp_path: Path) -> None:
        global_path = _write_rules(
            tmp_path / "global.json", {"skills": {"global-skill": {"keywords": ["x"]}}}
        )
        store = RuleStore(
            Settings(_env_file=None, skill_rules_path=global_path), project_root=tmp_path
        )
        assert [r.skill_id for r in store.skill_rules()] == ["global-skill"]

    def test_broken_file_falls_through(self, tmp_path: Path) -> None:
        broken = tmp_path / "project" / ".claude" / "skills" / "skill-rules.json"
        broken.parent.mkdir(parents=True)
        broken.write_text("{oops", encoding="utf-8")
        store = RuleStore(Settings(_env_file=None), project_root=tmp_path / "project")
        assert store.skill_rules() == DEFAULT_SKILL_RULES

    def test_rules_reloaded_every_call(self, tmp_path: Path) -> None:
        path = tmp_path / ".claude" / "skills" / "skill-rules.json"
        store = RuleStore(Settings(_env_file=None), project_root=tmp_path)
        _write_rules(path, {"skills": {"first": {"keywords": ["x"]}}})
        assert store.skill_rules()[0].skill_id == "first"
        _write_rules(path, {"skills": {"second": {"keywords": ["x"]}}})
        assert store.skill_rules()[0].skill_id == "second"

    def test_block_rules_follow_protected_branches(self) -> None:
        store = RuleStore(Settings(_env_file=None, protected_branches=["trunk"]))
        assert store.protected_branches == frozenset({"trunk"})
        assert any(rule.matches("git push origin trunk") for rule in store.block_rules)
        assert not any(rule.matches("git push origin main") for rule in store.block_rules)

    def test_promotion_policy_from_settings(self) -> None:
        store = RuleStore(
            Settings(_env_file=None, warm_promotion_threshold=5, confidence_scale=20.0)
        )
        assert store.promotion_policy == PromotionPolicy(threshold=5, confidence_scale=20.0)


@pytest.mark.unit
class TestPromotionPolicy:
    def test_threshold(self) -> None:
        policy = PromotionPolicy(threshold=3)
        assert not policy.should_promote(2)
        assert policy.should_promote(3)

    def test_confidence_capped(self) -> None:
        policy = PromotionPolicy(confidence_scale=10.0)
        assert policy.confidence(3) == pytest.approx(0.3)
        assert policy.confidence(25) == 1.0
