"""Hook runtime: fans one event out to its registered hooks.

For each hook registered for the event kind (and tool, for tool-scoped
hooks), in registration order:

1. Skip it if it is disabled in settings, gated by the current degradation
   level, or its bypass flag is set in the environment.
2. Run it under the supervisor with its timeout.
3. Stop at the first ``block``; otherwise collect its context.

Background hooks are not run by ``dispatch``; the entrypoint calls
``run_background`` after the response has been written.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from jarvis_hooks.core.errors import JarvisHooksError
from jarvis_hooks.core.models import EventKind, HookCategory
from jarvis_hooks.hooks.models import Decision, HookEvent, Verdict
from jarvis_hooks.hooks.supervisor import HandlerOutcome, run_supervised
from jarvis_hooks.services.health import HookHealthTracker

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"

HandlerFn = Callable[[HookEvent], Decision | None]


@dataclass(frozen=True)
class HookSpec:
    """Registration record for one hook."""

    name: str
    kind: EventKind
    handler: HandlerFn
    category: HookCategory = HookCategory.STANDARD
    tools: frozenset[str] | None = None  # None: every tool (or not tool-scoped)
    background: bool = False
    bypass_flags: tuple[str, ...] = ()

    def applies_to(self, event: HookEvent) -> bool:
        if event.kind is not self.kind:
            return False
        return self.tools is None or event.tool_name in self.tools


@dataclass
class DispatchReport:
    """Decision plus per-hook bookkeeping (useful in tests and logs)."""

    decision: Decision
    ran: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)
    outcomes: dict[str, HandlerOutcome] = field(default_factory=dict)


class HookRuntime:
    """Registry plus dispatcher."""

    def __init__(
        self,
        hooks: Iterable[HookSpec] = (),
        health: HookHealthTracker | None = None,
        default_timeout: float = 5.0,
        timeouts: Mapping[str, float] | None = None,
        disabled: Iterable[str] = (),
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._hooks: list[HookSpec] = list(hooks)
        self._health = health
        self._default_timeout = default_timeout
        self._timeouts = dict(timeouts or {})
        self._disabled = frozenset(disabled)
        self._environ = environ if environ is not None else os.environ
        # Degradation level in effect before the last SessionStart reset
        self.previous_level = 0

    def register(self, spec: HookSpec) -> None:
        if any(h.name == spec.name for h in self._hooks):
            raise ValueError(f"Hook already registered: {spec.name}")
        self._hooks.append(spec)

    @property
    def hooks(self) -> list[HookSpec]:
        return list(self._hooks)

    def timeout_for(self, spec: HookSpec) -> float:
        return self._timeouts.get(spec.name, self._default_timeout)

    # =========================================================================
    # Gating
    # =========================================================================

    def _degradation_level(self) -> int:
        if self._health is None:
            return 0
        try:
            return self._health.level()
        except JarvisHooksError as e:
            logger.warning(f"Cannot read hook health, assuming healthy: {e}")
            return 0

    def _skip_reason(self, spec: HookSpec, level: int) -> str | None:
        if spec.name in self._disabled:
            return "disabled"
        if self._health is not None and not self._health.allows(spec.category, level):
            return f"degraded (level {level})"
        for flag in spec.bypass_flags:
            if self._environ.get(flag) == "1":
                return f"bypass {flag}"
        return None

    def _selected(self, event: HookEvent, background: bool) -> list[HookSpec]:
        return [h for h in self._hooks if h.background is background and h.applies_to(event)]

    # =========================================================================
    # Running
    # =========================================================================

    def _record(self, spec: HookSpec, outcome: HandlerOutcome) -> str:
        """Update health; return a user warning if a required hook keeps failing.

        Degraded runs count as failures even though their decision is used.
        """
        if self._health is None:
            return ""
        try:
            if not outcome.failed:
                self._health.record_success(spec.name)
                return ""
            count = self._health.record_failure(spec.name)
            if spec.category is not HookCategory.OPTIONAL and count >= self._health.warn_after:
                return self._health.warning_for(spec.name)
        except JarvisHooksError as e:
            logger.debug(f"Cannot update hook health for {spec.name}: {e}")
        return ""

    def _run(self, spec: HookSpec, event: HookEvent) -> HandlerOutcome:
        return run_supervised(
            spec.name,
            lambda: spec.handler(event),
            timeout=self.timeout_for(spec),
            category=spec.category,
            session_id=event.session_id,
        )

    def _reset_health(self) -> None:
        if self._health is None:
            return
        self.previous_level = self._degradation_level()
        try:
            self._health.reset()
        except JarvisHooksError as e:
            logger.warning(f"Cannot reset hook health: {e}")

    def dispatch_report(self, event: HookEvent) -> DispatchReport:
        if event.kind is EventKind.SESSION_START:
            self._reset_health()

        level = self._degradation_level()
        report = DispatchReport(decision=Decision.allow())
        contexts: list[str] = []
        messages: list[str] = []

        for spec in self._selected(event, background=False):
            reason = self._skip_reason(spec, level)
            if reason is not None:
                logger.debug(f"Skipping hook {spec.name}: {reason}")
                report.skipped[spec.name] = reason
                continue

            outcome = self._run(spec, event)
            report.ran.append(spec.name)
            report.outcomes[spec.name] = outcome
            warning = self._record(spec, outcome)
            if warning:
                messages.append(warning)

            decision = outcome.decision
            if decision.system_message:
                messages.append(decision.system_message)
            if decision.blocked:
                logger.info(f"Hook {spec.name} blocked {event.kind.value}")
                report.decision = Decision(
                    decision=Verdict.BLOCK,
                    reason=decision.reason,
                    system_message="\n".join(messages),
                )
                return report
            if decision.additional_context:
                contexts.append(decision.additional_context)

        report.decision = Decision(
            additional_context=CONTEXT_SEPARATOR.join(contexts),
            system_message="\n".join(messages),
        )
        return report

    def dispatch(self, event: HookEvent) -> Decision:
        """Run the foreground hooks for *event* and fold their verdicts."""
        return self.dispatch_report(event).decision

    def run_background(self, event: HookEvent) -> None:
        """Run background hooks for *event*; their verdicts are discarded."""
        level = self._degradation_level()
        for spec in self._selected(event, background=True):
            reason = self._skip_reason(spec, level)
            if reason is not None:
                logger.debug(f"Skipping background hook {spec.name}: {reason}")
                continue
            outcome = self._run(spec, event)
            self._record(spec, outcome)

    def has_background(self, event: HookEvent) -> bool:
        return bool(self._selected(event, background=True))
