"""Service factory for dependency injection and initialization.

Creates the state stores and services for one process and wires the hook
runtime from them.  The hook entrypoint and the CLI both go through here.

Usage:
    from jarvis_hooks.factory import ServiceFactory

    factory = ServiceFactory(settings, project_root=cwd)
    services = factory.create_all()
    runtime = factory.create_runtime(services)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from jarvis_hooks.adapters.json_store import JsonStateBackend
from jarvis_hooks.config import Settings
from jarvis_hooks.core.models import EventKind, HookCategory
from jarvis_hooks.core.utils import Clock, utc_now
from jarvis_hooks.hooks.compaction_guard import CompactionGuard, find_task_title
from jarvis_hooks.hooks.gh_cli_suggest import GH_CLI_BYPASS_FLAGS, GhCliAdvisor
from jarvis_hooks.hooks.metrics import MetricsCapture
from jarvis_hooks.hooks.models import HookEvent
from jarvis_hooks.hooks.pattern_capture import CAPTURE_TOOLS, PatternCapture
from jarvis_hooks.hooks.runtime import HookRuntime, HookSpec
from jarvis_hooks.hooks.safety_policy import EDIT_TOOLS, SafetyPolicyEngine
from jarvis_hooks.hooks.session_start import SessionStartContext
from jarvis_hooks.hooks.session_tracker import TRACKED_TOOLS, SessionTracker
from jarvis_hooks.hooks.skill_activation import SkillActivationMatcher
from jarvis_hooks.hooks.type_guard import ANY_TYPE_TOOLS, AnyTypeGuard
from jarvis_hooks.ports.storage import StateBackendProtocol
from jarvis_hooks.services.archival import ArchivalSweeper, get_demotion_policy
from jarvis_hooks.services.health import HEALTH_NAMESPACE, HookHealthTracker
from jarvis_hooks.services.memory_tiers import (
    REVIEW_INBOX_NAMESPACE,
    MemoryTierStore,
    Promoter,
    ReviewInbox,
)
from jarvis_hooks.services.metrics import METRICS_NAMESPACE, MetricsStore
from jarvis_hooks.services.pattern_ledger import PATTERN_LEDGER_NAMESPACE, PatternLedger
from jarvis_hooks.services.rules import RuleStore
from jarvis_hooks.services.safety_rules import (
    CATEGORY_BYPASS_FLAGS,
    CATEGORY_ISOLATION,
    CATEGORY_TYPE_SAFETY,
)
from jarvis_hooks.services.session_state import (
    SESSION_CONTEXT_NAMESPACE,
    SESSION_STATE_NAMESPACE,
    SessionContextStore,
    SessionStateStore,
)
from jarvis_hooks.services.snapshot_store import COMPACTION_NAMESPACE, SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Container for all initialized services.

    Attributes:
        rules: Skill, promotion and safety rule tables.
        sessions: Per-session skill recommendation state.
        contexts: Per-session active skill and task summary.
        ledger: Pattern occurrence counts.
        tiers: Hot/warm/cold learnings.
        inbox: Review inbox for promoted learnings.
        promoter: Creates hot entries from promoted ledger records.
        snapshots: Pending compaction snapshot.
        health: Hook failure tracking.
        metrics: Daily usage counters.
        sweeper: Tier archival sweep.
    """

    rules: RuleStore
    sessions: SessionStateStore
    contexts: SessionContextStore
    ledger: PatternLedger
    tiers: MemoryTierStore
    inbox: ReviewInbox
    promoter: Promoter
    snapshots: SnapshotStore
    health: HookHealthTracker
    metrics: MetricsStore
    sweeper: ArchivalSweeper


class ServiceFactory:
    """Factory for creating and wiring all services.

    Example:
        factory = ServiceFactory(settings)
        services = factory.create_all()
        # Use services.tiers, services.sweeper, etc.
    """

    def __init__(
        self,
        settings: Settings,
        backend: StateBackendProtocol | None = None,
        project_root: str | Path = "",
        environ: Mapping[str, str] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the factory.

        Args:
            settings: Application settings.
            backend: Optional state backend override for testing.
            project_root: Project directory (skill rules, task files, git).
            environ: Environment used for bypass flags (defaults to os.environ).
            clock: Time source shared by every service.
        """
        self._settings = settings
        self._backend = backend
        self._project_root = Path(project_root) if project_root else None
        self._environ = environ if environ is not None else os.environ
        self._clock = clock

    def create_backend(self) -> StateBackendProtocol:
        if self._backend is None:
            self._backend = JsonStateBackend(
                self._settings.state_dir, lock_timeout=self._settings.lock_timeout_seconds
            )
        return self._backend

    def create_all(self) -> ServiceContainer:
        """Create all services with shared stores and clock."""
        settings = self._settings
        backend = self.create_backend()
        clock = self._clock

        rules = RuleStore(settings, project_root=self._project_root or "")
        tiers = MemoryTierStore(backend, clock=clock)
        inbox = ReviewInbox(backend.open(REVIEW_INBOX_NAMESPACE))
        ledger = PatternLedger(backend.open(PATTERN_LEDGER_NAMESPACE), clock=clock)
        sweeper = ArchivalSweeper(
            tiers,
            inbox,
            ledger,
            policy=get_demotion_policy(settings.demotion_policy, settings),
            promotion_threshold=settings.warm_promotion_threshold,
            hot_capacity=settings.hot_capacity,
            clock=clock,
        )

        return ServiceContainer(
            rules=rules,
            sessions=SessionStateStore(
                backend.open(SESSION_STATE_NAMESPACE),
                expiry=timedelta(hours=settings.session_expiry_hours),
                clock=clock,
            ),
            contexts=SessionContextStore(backend.open(SESSION_CONTEXT_NAMESPACE), clock=clock),
            ledger=ledger,
            tiers=tiers,
            inbox=inbox,
            promoter=Promoter(tiers, inbox, rules.promotion_policy, clock=clock),
            snapshots=SnapshotStore(backend.open(COMPACTION_NAMESPACE)),
            health=HookHealthTracker(
                backend.open(HEALTH_NAMESPACE),
                thresholds=settings.degradation_thresholds,
                clock=clock,
            ),
            metrics=MetricsStore(backend.open(METRICS_NAMESPACE)),
            sweeper=sweeper,
        )

    def _task_title(self, event: HookEvent) -> str | None:
        root = self._project_root or (Path(event.cwd) if event.cwd else Path.cwd())
        task_dir = self._settings.task_dir
        if not task_dir.is_absolute():
            task_dir = root / task_dir
        return find_task_title(
            task_dir,
            timedelta(minutes=self._settings.task_max_age_minutes),
            self._clock(),
        )

    def create_runtime(self, services: ServiceContainer) -> HookRuntime:
        """Register every hook, in dispatch order."""
        settings = self._settings
        runtime = HookRuntime(
            health=services.health,
            default_timeout=settings.hook_timeout_seconds,
            timeouts=settings.hook_timeouts,
            disabled=settings.disabled_hooks,
            environ=self._environ,
        )

        rules = services.rules
        guard = CompactionGuard(
            services.snapshots,
            services.contexts,
            task_title=self._task_title,
            summary_max_chars=settings.task_summary_max_chars,
            clock=self._clock,
        )
        safety = SafetyPolicyEngine(
            safe_patterns=rules.safe_patterns,
            block_rules=rules.block_rules,
            protected_branches=rules.protected_branches,
            environ=self._environ,
            require_isolation=settings.require_isolation,
        )
        any_types = AnyTypeGuard(settings.any_type_severity)
        gh_cli = GhCliAdvisor()
        skills = SkillActivationMatcher(rules.skill_rules, services.sessions)
        tracker = SessionTracker(services.contexts, settings.task_summary_max_chars)
        capture = PatternCapture(services.ledger, services.promoter, rules.promotion_policy)
        metrics = MetricsCapture(services.metrics)
        session_start = SessionStartContext(
            services.tiers, previous_level=lambda: runtime.previous_level
        )

        for spec in (
            HookSpec(
                "session-start",
                EventKind.SESSION_START,
                session_start.handle,
                category=HookCategory.STANDARD,
            ),
            # Recovery context must come before any other prompt context
            HookSpec(
                "compaction-recovery",
                EventKind.USER_PROMPT_SUBMIT,
                guard.handle_prompt,
                category=HookCategory.ESSENTIAL,
            ),
            HookSpec(
                "skill-activation",
                EventKind.USER_PROMPT_SUBMIT,
                skills.handle,
                category=HookCategory.OPTIONAL,
            ),
            HookSpec(
                "safety-policy",
                EventKind.PRE_TOOL_USE,
                safety.handle_bash,
                category=HookCategory.ESSENTIAL,
                tools=frozenset({"Bash"}),
            ),
            HookSpec(
                "gh-cli-suggest",
                EventKind.PRE_TOOL_USE,
                gh_cli.handle,
                category=HookCategory.OPTIONAL,
                tools=frozenset({"Bash"}),
                bypass_flags=GH_CLI_BYPASS_FLAGS,
            ),
            HookSpec(
                "worktree-isolation",
                EventKind.PRE_TOOL_USE,
                safety.handle_edit,
                category=HookCategory.ESSENTIAL,
                tools=EDIT_TOOLS,
                bypass_flags=CATEGORY_BYPASS_FLAGS[CATEGORY_ISOLATION],
            ),
            HookSpec(
                "no-any-types",
                EventKind.PRE_TOOL_USE,
                any_types.handle,
                category=HookCategory.STANDARD,
                tools=ANY_TYPE_TOOLS,
                bypass_flags=CATEGORY_BYPASS_FLAGS[CATEGORY_TYPE_SAFETY],
            ),
            HookSpec(
                "session-tracker",
                EventKind.POST_TOOL_USE,
                tracker.handle,
                category=HookCategory.OPTIONAL,
                tools=TRACKED_TOOLS,
            ),
            HookSpec(
                "pattern-capture",
                EventKind.POST_TOOL_USE,
                capture.handle,
                category=HookCategory.OPTIONAL,
                tools=CAPTURE_TOOLS,
                background=True,
            ),
            HookSpec(
                "metrics",
                EventKind.POST_TOOL_USE,
                metrics.handle,
                category=HookCategory.OPTIONAL,
                background=True,
            ),
            HookSpec(
                "compaction-preserve",
                EventKind.PRE_COMPACT,
                guard.handle_pre_compact,
                category=HookCategory.ESSENTIAL,
            ),
        ):
            runtime.register(spec)

        logger.debug(f"Registered {len(runtime.hooks)} hooks")
        return runtime
