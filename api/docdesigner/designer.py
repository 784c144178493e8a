"""
One document-editing session bound to one designer widget.

``load_template`` resolves the template and hands it to the widget under the
reconciliation supervisor; ``save_template`` verifies the caller, reads the
widget back and persists it. Database and storage calls run in a worker
thread so the event loop driving the widget is never blocked.
"""

import asyncio
import copy
import logging
from typing import Any, Callable, ContextManager, Dict, Optional, Set

from sqlmodel import Session

from . import template_service
from .engine.converter import normalize_template
from .engine.reconcile import DesignerWidget, ReconcileOutcome, ReconciliationSupervisor
from .errors import AuthenticationInvalid

logger = logging.getLogger(__name__)


class DesignerSession:
    def __init__(
        self,
        document_id: int,
        widget: DesignerWidget,
        session_factory: Callable[[], ContextManager[Session]],
        verify_session: Callable[[], str],
        supervisor: Optional[ReconciliationSupervisor] = None,
        plugins: Any = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        self.document_id = document_id
        self.widget = widget
        self.session_factory = session_factory
        self.verify_session = verify_session
        self.supervisor = supervisor or ReconciliationSupervisor(widget)
        self.plugins = plugins
        self.options = options or {}
        self.template: Optional[Dict[str, Any]] = None
        self.source: Optional[str] = None
        self.outcome: Optional[ReconcileOutcome] = None
        self._closed = False
        self._save_tasks: Set[asyncio.Task] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    def _resolve(self):
        with self.session_factory() as session:
            return template_service.load_template(session, self.document_id)

    async def load_template(self, container: Any = None) -> Dict[str, Any]:
        resolved = await asyncio.to_thread(self._resolve)
        self.source = resolved.source
        self.template = normalize_template(resolved.template)
        self.outcome = await self.supervisor.run(
            self.template,
            container=container,
            plugins=self.plugins,
            options=self.options,
            on_save=self._on_widget_save,
        )
        if self.outcome.warning is not None:
            logger.warning("document %s: %s", self.document_id, self.outcome.warning)
        return self.template

    def _principal(self) -> str:
        try:
            return self.verify_session()
        except AuthenticationInvalid:
            raise
        except Exception as exc:
            raise AuthenticationInvalid("session verification failed") from exc

    def _with_signer_metadata(self, current: Dict[str, Any]) -> Dict[str, Any]:
        # the widget's read-back does not always carry the signer list
        merged = dict(current)
        loaded = self.template or {}
        if not merged.get("signers") and loaded.get("signers"):
            merged["signers"] = copy.deepcopy(loaded["signers"])
            merged["multiSignature"] = bool(loaded.get("multiSignature"))
        if not merged.get("metadata") and loaded.get("metadata"):
            merged["metadata"] = copy.deepcopy(loaded["metadata"])
        return merged

    def _persist(self, template: Dict[str, Any], principal_id: str) -> Dict[str, Any]:
        with self.session_factory() as session:
            return template_service.save_template(session, self.document_id, template, principal_id)

    async def save_template(self, template: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        principal_id = self._principal()
        current = template if template is not None else self.widget.read()
        return await asyncio.to_thread(self._persist, self._with_signer_metadata(current), principal_id)

    def _on_widget_save(self, template: Dict[str, Any]) -> None:
        if self._closed:
            return
        task = asyncio.get_running_loop().create_task(self.save_template(template))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_finished)

    def _save_finished(self, task: asyncio.Task) -> None:
        self._save_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("document %s: save from designer failed", self.document_id, exc_info=task.exception())

    def close(self) -> None:
        self._closed = True
        self.supervisor.dispose()
