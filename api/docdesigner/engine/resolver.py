"""
Picks the data source a designer session starts from.

In order: the saved full template, the flat persisted fields, an empty
template. Whatever wins gets a freshly issued ``basePdf``; references stored
with older templates may carry expired access tokens.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..errors import RecoverableDataError, ReferenceExpiredOrUnavailable
from .converter import count_fields, iter_configs, to_template
from .signers import assign_default_signer, derive_signers

logger = logging.getLogger(__name__)

SOURCE_SAVED_TEMPLATE = "saved_template"
SOURCE_FLAT_FIELDS = "flat_fields"
SOURCE_EMPTY = "empty"


@dataclass
class ResolvedTemplate:
    template: Dict[str, Any]
    source: str


class TemplateSourceResolver:
    def __init__(
        self,
        fetch_reference: Callable[[Any], Any],
        fetch_saved_template: Callable[[str], Optional[Dict[str, Any]]],
    ):
        self.fetch_reference = fetch_reference
        self.fetch_saved_template = fetch_saved_template

    def resolve(
        self,
        document_id: Any,
        flat_fields: List[Dict[str, Any]],
        saved_template_ref: Optional[str] = None,
        signature_type: Optional[str] = None,
        page_count: Optional[int] = None,
    ) -> ResolvedTemplate:
        base_pdf = self._fresh_reference(document_id)

        if saved_template_ref:
            try:
                template = self._from_saved_template(saved_template_ref, base_pdf, signature_type)
                logger.info("document %s: using saved template %s", document_id, saved_template_ref)
                return ResolvedTemplate(template, SOURCE_SAVED_TEMPLATE)
            except Exception as exc:
                logger.warning("document %s: saved template unusable (%s), falling back to fields", document_id, exc)

        if flat_fields:
            try:
                template = to_template(
                    flat_fields,
                    base_pdf,
                    signature_type=signature_type,
                    page_count=page_count,
                )
                logger.info("document %s: rebuilt template from %d field(s)", document_id, len(flat_fields))
                return ResolvedTemplate(template, SOURCE_FLAT_FIELDS)
            except Exception:
                logger.exception("document %s: could not rebuild template from fields", document_id)

        logger.info("document %s: starting from an empty template", document_id)
        return ResolvedTemplate(empty_template(base_pdf, page_count), SOURCE_EMPTY)

    def _fresh_reference(self, document_id: Any) -> Any:
        try:
            reference = self.fetch_reference(document_id)
        except ReferenceExpiredOrUnavailable:
            raise
        except Exception as exc:
            raise ReferenceExpiredOrUnavailable(f"could not issue a document reference for {document_id}") from exc
        if not reference:
            raise ReferenceExpiredOrUnavailable(f"no document reference available for {document_id}")
        return reference

    def _from_saved_template(
        self,
        saved_template_ref: str,
        base_pdf: Any,
        signature_type: Optional[str],
    ) -> Dict[str, Any]:
        saved = self.fetch_saved_template(saved_template_ref)
        if not isinstance(saved, dict):
            raise RecoverableDataError("saved template missing or not an object")
        schemas = saved.get("schemas")
        if not isinstance(schemas, list) or count_fields(schemas) == 0:
            raise RecoverableDataError("saved template has no fields")

        template = copy.deepcopy(saved)
        metadata = template.get("metadata") if isinstance(template.get("metadata"), dict) else {}
        signers = template.get("signers")
        if isinstance(signers, list) and signers:
            multi_signature = template.get("multiSignature")
            if not isinstance(multi_signature, bool):
                multi_signature = len(signers) > 1
        else:
            logger.info("saved template %s has no signers, deriving them", saved_template_ref)
            assign_default_signer(iter_configs(template["schemas"]))
            signers, multi_signature = derive_signers(
                list(iter_configs(template["schemas"])),
                signature_type=signature_type or metadata.get("signature_type"),
            )

        template.update(
            basePdf=base_pdf,
            signers=copy.deepcopy(signers),
            multiSignature=multi_signature,
        )
        return template


def empty_template(base_pdf: Any, page_count: Optional[int] = None) -> Dict[str, Any]:
    return {"basePdf": base_pdf, "schemas": [[] for _ in range(max(page_count or 0, 1))]}
