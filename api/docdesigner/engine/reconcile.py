"""
Keeps the designer widget's signer metadata in line with the template it was given.

The widget owns its own copy of the template and sometimes resets ``signers``
and ``multiSignature`` to its defaults while it initialises. After building
it the supervisor reads the template back, re-pushes it on a configurable
escalating schedule, and as a last resort overlays the signer metadata onto
whatever the widget reports. Widget failures never propagate: the outcome
carries a ``ReconciliationDegraded`` warning instead.

    Built -> Verifying -> Converged
                       -> Reapplied -> Verifying -> ... -> Reconciled | Failed
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence

from ..config import RECONCILE_RETRY_DELAYS, RECONCILE_SETTLE_DELAY, RECONCILE_VERIFY_DELAY
from ..errors import ReconciliationDegraded

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    BUILT = "built"
    VERIFYING = "verifying"
    CONVERGED = "converged"
    REAPPLIED = "reapplied"
    RECONCILED = "reconciled"
    FAILED = "failed"
    ABANDONED = "abandoned"


class DesignerWidget(Protocol):
    def construct(self, container: Any, template: Dict[str, Any], plugins: Any, options: Dict[str, Any]) -> None: ...

    def replace(self, template: Dict[str, Any]) -> None: ...

    def read(self) -> Dict[str, Any]: ...

    def on_save(self, callback: Callable[[Dict[str, Any]], Any]) -> None: ...


@dataclass
class ReconcileOutcome:
    state: ReconcileState
    attempts: int = 0
    history: List[ReconcileState] = field(default_factory=list)
    warning: Optional[ReconciliationDegraded] = None

    @property
    def converged(self) -> bool:
        return self.state in (ReconcileState.CONVERGED, ReconcileState.RECONCILED)


def signers_converged(expected: Dict[str, Any], actual: Any) -> bool:
    wanted = expected.get("signers") or []
    if not wanted:
        return True
    if not isinstance(actual, dict):
        return False
    reported = actual.get("signers")
    if not isinstance(reported, list) or len(reported) < len(wanted):
        return False
    if "multiSignature" in expected and bool(actual.get("multiSignature")) != bool(expected["multiSignature"]):
        return False
    return True


class ReconciliationSupervisor:
    def __init__(
        self,
        widget: DesignerWidget,
        settle_delay: float = RECONCILE_SETTLE_DELAY,
        retry_delays: Sequence[float] = RECONCILE_RETRY_DELAYS,
        verify_delay: float = RECONCILE_VERIFY_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.widget = widget
        self.settle_delay = settle_delay
        self.retry_delays = tuple(retry_delays)
        self.verify_delay = verify_delay
        self.sleep = sleep
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Abandon pending retries; the widget is not touched again."""
        self._disposed = True

    async def run(
        self,
        template: Dict[str, Any],
        container: Any = None,
        plugins: Any = None,
        options: Optional[Dict[str, Any]] = None,
        on_save: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> ReconcileOutcome:
        outcome = ReconcileOutcome(ReconcileState.BUILT)
        if self._disposed:
            return self._finish(outcome, ReconcileState.ABANDONED)
        try:
            self.widget.construct(container, copy.deepcopy(template), plugins, options or {})
            if on_save is not None:
                self.widget.on_save(on_save)
        except Exception as exc:
            logger.exception("designer widget failed to build")
            return self._degrade(outcome, f"designer widget failed to build: {exc}")
        outcome.history.append(ReconcileState.BUILT)

        if not await self._pause(self.settle_delay):
            return self._finish(outcome, ReconcileState.ABANDONED)
        if self._verify(outcome, template):
            return self._finish(outcome, ReconcileState.CONVERGED)

        for delay in self.retry_delays:
            outcome.attempts += 1
            logger.info("widget signers diverged, re-applying template (attempt %d)", outcome.attempts)
            self._push(outcome, template)
            if not await self._pause(delay):
                return self._finish(outcome, ReconcileState.ABANDONED)
            if self._verify(outcome, template):
                return self._finish(outcome, ReconcileState.RECONCILED)

        outcome.attempts += 1
        logger.warning("widget still lacks signers after %d retries, merging them into its template", len(self.retry_delays))
        self._push(outcome, self._merge_signers(template))
        if not await self._pause(self.verify_delay):
            return self._finish(outcome, ReconcileState.ABANDONED)
        if self._verify(outcome, template):
            return self._finish(outcome, ReconcileState.RECONCILED)
        return self._degrade(outcome, "designer widget did not accept signer metadata; multi-signer assignment may be unavailable")

    async def _pause(self, delay: float) -> bool:
        await self.sleep(delay)
        return not self._disposed

    def _read(self) -> Optional[Dict[str, Any]]:
        try:
            return self.widget.read()
        except Exception:
            logger.warning("could not read template back from widget", exc_info=True)
            return None

    def _verify(self, outcome: ReconcileOutcome, template: Dict[str, Any]) -> bool:
        outcome.history.append(ReconcileState.VERIFYING)
        return signers_converged(template, self._read())

    def _push(self, outcome: ReconcileOutcome, template: Dict[str, Any]) -> None:
        outcome.history.append(ReconcileState.REAPPLIED)
        try:
            self.widget.replace(copy.deepcopy(template))
        except Exception:
            logger.warning("widget rejected template update", exc_info=True)

    def _merge_signers(self, template: Dict[str, Any]) -> Dict[str, Any]:
        current = self._read()
        merged = dict(current) if isinstance(current, dict) else copy.deepcopy(template)
        merged["signers"] = copy.deepcopy(template.get("signers") or [])
        merged["multiSignature"] = bool(template.get("multiSignature"))
        return merged

    def _finish(self, outcome: ReconcileOutcome, state: ReconcileState) -> ReconcileOutcome:
        outcome.state = state
        outcome.history.append(state)
        logger.info("widget reconciliation finished: %s after %d attempt(s)", state.value, outcome.attempts)
        return outcome

    def _degrade(self, outcome: ReconcileOutcome, message: str) -> ReconcileOutcome:
        outcome.warning = ReconciliationDegraded(message)
        logger.warning(message)
        return self._finish(outcome, ReconcileState.FAILED)
