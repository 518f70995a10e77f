"""Unit tests for jarvis_hooks.hooks.safety_policy.

Tests cover:
- Destructive git and rm commands blocked with a remediation message
- Safe patterns (unscoped and scoped) taking precedence over block rules
- Protected branch push and merge rules
- Inline NAME=1 prefixes lifting only their own category
- Environment bypass flags
- Absolute binary paths normalized before matching
- Conventional commit message format
- Worktree isolation for file edits
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from jarvis_hooks.adapters.git import RepoInfo
from jarvis_hooks.core.models import EventKind, ViolationClass
from jarvis_hooks.hooks.safety_policy import (
    SafetyPolicyEngine,
    normalize_command,
    split_inline_flags,
)
from jarvis_hooks.services.safety_rules import commit_subject
from tests.helpers import make_event


def _repo(branch: str | None = "main", is_worktree: bool = False) -> RepoInfo:
    return RepoInfo(
        root=Path("/work/project"),
        git_dir=Path("/work/project/.git"),
        is_worktree=is_worktree,
        branch=branch,
    )


def _engine(
    branch: str | None = "feature/login",
    environ: dict[str, str] | None = None,
    require_isolation: bool = False,
    repo: RepoInfo | None = None,
) -> SafetyPolicyEngine:
    inspector = MagicMock(return_value=repo if repo is not None else _repo(branch))
    return SafetyPolicyEngine(
        repo_inspector=inspector,
        environ=environ or {},
        require_isolation=require_isolation,
    )


# =============================================================================
# Helpers
# =============================================================================


@pytest.mark.unit
class TestCommandParsing:
    def test_split_inline_flags(self) -> None:
        flags, rest = split_inline_flags("A=1 B=0 git status")
        assert flags == frozenset({"A"})
        assert rest == "git status"

    def test_no_inline_flags(self) -> None:
        assert split_inline_flags("  git status ") == (frozenset(), "git status")

    @pytest.mark.parametrize(
        "command,expected",
        [
            ("/usr/bin/git reset --hard", "git reset --hard"),
            ("/bin/rm -rf build", "rm -rf build"),
            ("cd x && /usr/local/bin/git push", "cd x && git push"),
            ("git status", "git status"),
        ],
    )
    def test_normalize_command(self, command: str, expected: str) -> None:
        assert normalize_command(command) == expected


# =============================================================================
# Destructive commands
# =============================================================================


@pytest.mark.unit
class TestDestructiveCommands:
    @pytest.mark.parametrize(
        "command,rule_id",
        [
            ("git reset --hard HEAD~1", "reset-hard"),
            ("git checkout -- src/app.py", "checkout-discard"),
            ("git restore src/app.py", "restore-discard"),
            ("git clean -fd", "clean-force"),
            ("git push --force origin feature", "force-push"),
            ("git branch -D old-feature", "branch-force-delete"),
            ("git stash drop", "stash-drop"),
            ("rm -rf build", "rm-recursive"),
            ("rm -rf ~/projects", "rm-root-or-home"),
            ("rm -rf /tmp/build ~/project", "rm-root-or-home"),
            ("rm -rf /tmp/build; rm -rf ~", "rm-root-or-home"),
        ],
    )
    def test_blocked(self, command: str, rule_id: str) -> None:
        verdict = _engine().evaluate(command)
        assert verdict.blocked
        assert verdict.rule_id == rule_id

    def test_block_reason_format(self) -> None:
        verdict = _engine().evaluate("git reset --hard HEAD~1")
        assert verdict.reason is not None
        assert verdict.reason.startswith("DESTRUCTIVE COMMAND BLOCKED")
        assert "Command: git reset --hard HEAD~1" in verdict.reason
        assert "CLAUDE_ALLOW_DESTRUCTIVE=1" in verdict.reason
        assert verdict.violation is ViolationClass.DESTRUCTIVE_ACTION

    @pytest.mark.parametrize(
        "command",
        ["rm -rf /tmp/build src", "rm -rf src /tmp/build", "rm -fr /tmp/x -- /etc"],
    )
    def test_temp_target_does_not_cover_other_targets(self, command: str) -> None:
        verdict = _engine().evaluate(command)
        assert verdict.blocked
        assert verdict.rule_id in {"rm-root-or-home", "rm-recursive"}

    def test_absolute_path_does_not_evade(self) -> None:
        assert _engine().evaluate("/usr/bin/git reset --hard").blocked
        assert _engine().evaluate("/bin/rm -rf build").blocked

    @pytest.mark.parametrize(
        "command",
        [
            "git status",
            "git checkout -b feature/new",
            "git restore --staged src/app.py",
            "git clean -n",
            "git clean -nfd",
            "rm -rf /tmp/build-cache",
            "rm -rf /tmp/a /var/tmp/b",
            "rm -rf $TMPDIR/cache",
            "rm -rf /tmp/build && ls",
            "git push --force-with-lease origin feature",
            "ls -la > /dev/null",
            "npm test 2>&1",
            "",
            "   ",
        ],
    )
    def test_allowed(self, command: str) -> None:
        assert not _engine().evaluate(command).blocked


# =============================================================================
# Protected branches
# =============================================================================


@pytest.mark.unit
class TestProtectedBranches:
    def test_push_to_main_blocked(self) -> None:
        verdict = _engine().evaluate("git push origin main")
        assert verdict.blocked
        assert verdict.rule_id == "push-protected-branch"
        assert verdict.reason is not None
        assert "JARVIS_ALLOW_MAIN_PUSH=1" in verdict.reason
        assert verdict.violation is ViolationClass.DIVERGENT_BEHAVIOR

    def test_force_with_lease_to_main_still_blocked(self) -> None:
        verdict = _engine().evaluate("git push origin main --force-with-lease")
        assert verdict.blocked
        assert verdict.rule_id == "push-protected-branch"

    def test_inline_bypass_allows_same_command(self) -> None:
        command = "JARVIS_ALLOW_MAIN_PUSH=1 git push origin main --force-with-lease"
        assert not _engine().evaluate(command).blocked

    def test_inline_push_bypass_does_not_cover_force(self) -> None:
        verdict = _engine().evaluate("JARVIS_ALLOW_MAIN_PUSH=1 git push --force origin main")
        assert verdict.blocked
        assert verdict.rule_id == "force-push"

    def test_push_to_feature_allowed(self) -> None:
        assert not _engine().evaluate("git push origin feature/main-menu").blocked

    def test_merge_on_protected_branch_blocked(self) -> None:
        engine = _engine(branch="main")
        verdict = engine.evaluate("git merge feature/login", cwd="/work/project")
        assert verdict.blocked
        assert verdict.rule_id == "merge-protected-branch"

    def test_merge_on_feature_branch_allowed(self) -> None:
        assert not _engine(branch="feature/x").evaluate("git merge main", cwd="/w").blocked

    def test_branch_only_inspected_for_merge(self) -> None:
        inspector = MagicMock(return_value=_repo("main"))
        engine = SafetyPolicyEngine(repo_inspector=inspector, environ={})
        engine.evaluate("git status", cwd="/work/project")
        inspector.assert_not_called()
        engine.evaluate("git merge topic", cwd="/work/project")
        inspector.assert_called_once_with("/work/project")

    def test_merge_outside_repo_allowed(self) -> None:
        engine = SafetyPolicyEngine(repo_inspector=MagicMock(return_value=None), environ={})
        assert not engine.evaluate("git merge topic", cwd="/tmp").blocked


# =============================================================================
# Bypass flags
# =============================================================================


@pytest.mark.unit
class TestBypass:
    def test_inline_destructive_flag_scoped(self) -> None:
        engine = _engine()
        assert not engine.evaluate("CLAUDE_ALLOW_DESTRUCTIVE=1 git reset --hard").blocked
        verdict = engine.evaluate("CLAUDE_ALLOW_DESTRUCTIVE=1 git push origin main")
        assert verdict.blocked
        assert verdict.rule_id == "push-protected-branch"

    def test_inline_flag_must_be_one(self) -> None:
        assert _engine().evaluate("CLAUDE_ALLOW_DESTRUCTIVE=0 git reset --hard").blocked

    def test_environment_destructive_flag_is_global(self) -> None:
        engine = _engine(environ={"CLAUDE_ALLOW_DESTRUCTIVE": "1"})
        assert not engine.evaluate("git push origin main").blocked
        assert not engine.evaluate("git reset --hard").blocked

    def test_environment_category_flag(self) -> None:
        engine = _engine(environ={"CLAUDE_ALLOW_BASH_WRITE": "1"})
        assert not engine.evaluate("echo hi > notes.txt").blocked
        assert engine.evaluate("git reset --hard").blocked

    @pytest.mark.parametrize(
        "command,rule_id",
        [
            ("echo hi > notes.txt", "bash-redirect"),
            ("echo hi >> notes.txt", "bash-append"),
            ("echo hi | tee notes.txt", "bash-tee"),
            ("gh pr create --fill", "gh-pr-create"),
            ("gt submit", "graphite-submit"),
        ],
    )
    def test_out_of_process_commands_blocked(self, command: str, rule_id: str) -> None:
        verdict = _engine().evaluate(command)
        assert verdict.blocked
        assert verdict.rule_id == rule_id

    def test_submit_skill_flag_allows_pr_creation(self) -> None:
        engine = _engine(environ={"CLAUDE_SUBMIT_PR_SKILL": "1"})
        assert not engine.evaluate("gh pr create --fill").blocked


# =============================================================================
# Commit messages
# =============================================================================

HEREDOC_COMMIT = """git commit -m "$(cat <<'EOF'
{subject}

Longer body explaining the change.
EOF
)\""""


@pytest.mark.unit
class TestCommitMessages:
    @pytest.mark.parametrize(
        "command",
        [
            'git commit -m "feat(auth): add OAuth2 login flow"',
            "git commit -m 'fix: handle null user'",
            'git commit -am "chore(deps)!: drop node 16"',
            'git commit --message="docs: update README"',
            HEREDOC_COMMIT.format(subject="refactor(api): split handlers"),
            "git commit",
            "git commit --amend --no-edit",
            "git log -m",
        ],
    )
    def test_conventional_or_unreadable_allowed(self, command: str) -> None:
        assert not _engine().evaluate(command).blocked

    @pytest.mark.parametrize(
        "command",
        [
            'git commit -m "Update stuff"',
            "git commit -m 'wip'",
            'git commit -m "Feat: capitalized type"',
            'git commit -m "feat(Auth): uppercase scope"',
            'git commit -m "feat:missing space"',
            HEREDOC_COMMIT.format(subject="Fix the login bug"),
        ],
    )
    def test_unconventional_blocked(self, command: str) -> None:
        verdict = _engine().evaluate(command)
        assert verdict.blocked
        assert verdict.rule_id == "commit-message-format"
        assert verdict.violation is ViolationClass.DIVERGENT_BEHAVIOR

    def test_block_reason_lists_types_and_bypass(self) -> None:
        verdict = _engine().evaluate('git commit -m "Update stuff"')
        assert verdict.reason is not None
        assert verdict.reason.startswith("COMMIT MESSAGE FORMAT INVALID")
        assert "feat, fix, docs" in verdict.reason
        assert "CLAUDE_SKIP_COMMIT_FORMAT=1" in verdict.reason

    def test_inline_bypass(self) -> None:
        command = 'CLAUDE_SKIP_COMMIT_FORMAT=1 git commit -m "Update stuff"'
        assert not _engine().evaluate(command).blocked

    def test_environment_bypass(self) -> None:
        engine = _engine(environ={"CLAUDE_SKIP_COMMIT_FORMAT": "1"})
        assert not engine.evaluate('git commit -m "Update stuff"').blocked

    def test_subject_is_first_nonblank_line(self) -> None:
        command = HEREDOC_COMMIT.format(subject="\nfeat: leading blank line")
        assert commit_subject(command) == "feat: leading blank line"
        assert commit_subject("git commit") is None


# =============================================================================
# Worktree isolation
# =============================================================================


@pytest.mark.unit
class TestWorktreeIsolation:
    def test_off_by_default(self) -> None:
        engine = _engine(repo=_repo("main"))
        assert not engine.evaluate_file_edit("/work/project/src/app.py").blocked

    def test_main_checkout_blocked(self) -> None:
        engine = _engine(require_isolation=True, repo=_repo("main"))
        verdict = engine.evaluate_file_edit("/work/project/src/app.py")
        assert verdict.blocked
        assert verdict.rule_id == "require-worktree"
        assert verdict.violation is ViolationClass.MISSING_REQUIREMENT
        assert verdict.reason is not None
        assert verdict.reason.startswith("WORKTREE REQUIRED")
        assert "git worktree add .worktrees/feature-name -b feature/feature-name" in verdict.reason
        assert "Branch: main" in verdict.reason

    def test_worktree_allowed(self) -> None:
        engine = _engine(require_isolation=True, repo=_repo("feature/x", is_worktree=True))
        assert not engine.evaluate_file_edit("/work/wt/src/app.py").blocked

    def test_outside_repo_allowed(self) -> None:
        engine = SafetyPolicyEngine(
            repo_inspector=MagicMock(return_value=None), environ={}, require_isolation=True
        )
        assert not engine.evaluate_file_edit("/tmp/scratch.py").blocked

    @pytest.mark.parametrize(
        "environ",
        [{"CLAUDE_ALLOW_MAIN_MODIFICATIONS": "1"}, {"CONDUCTOR_ROOT_PATH": "/conductor/ws"}],
    )
    def test_escape_hatches(self, environ: dict[str, str]) -> None:
        engine = _engine(environ=environ, require_isolation=True, repo=_repo("main"))
        assert not engine.evaluate_file_edit("/work/project/src/app.py").blocked

    def test_relative_path_resolved_against_cwd(self) -> None:
        inspector = MagicMock(return_value=_repo("main"))
        engine = SafetyPolicyEngine(repo_inspector=inspector, environ={}, require_isolation=True)
        engine.evaluate_file_edit("src/app.py", cwd="/work/project")
        inspector.assert_called_once_with(Path("/work/project/src"))


# =============================================================================
# Hook handlers
# =============================================================================


@pytest.mark.unit
class TestHandlers:
    def test_handle_bash_blocks(self) -> None:
        event = make_event(
            EventKind.PRE_TOOL_USE,
            tool_name="Bash",
            tool_input={"command": "git reset --hard"},
            cwd="/work/project",
        )
        decision = _engine().handle_bash(event)
        assert decision.blocked
        assert decision.exit_code == 1
        assert decision.to_response(EventKind.PRE_TOOL_USE)["decision"] == "block"  # type: ignore[index]

    def test_handle_bash_allows(self) -> None:
        event = make_event(
            EventKind.PRE_TOOL_USE, tool_name="Bash", tool_input={"command": "git status"}
        )
        assert not _engine().handle_bash(event).blocked

    def test_handle_edit(self) -> None:
        event = make_event(
            EventKind.PRE_TOOL_USE,
            tool_name="Write",
            tool_input={"file_path": "/work/project/a.py", "content": "x"},
        )
        engine = _engine(require_isolation=True, repo=_repo("main"))
        assert engine.handle_edit(event).blocked
