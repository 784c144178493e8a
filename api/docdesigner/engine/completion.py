from typing import Any, Dict, List, Optional, Tuple

from .converter import iter_configs
from .signers import MULTI_SIGNATURE_TYPE, collect_signer_ids

STATUS_DRAFT = "draft"
STATUS_READY = "ready"


def _is_signature(field: Dict[str, Any]) -> bool:
    properties = field.get("properties") or {}
    return field.get("type") == "signature" or properties.get("type") == "signature"


def evaluate_completion(fields: List[Dict[str, Any]], has_pdf: bool, signature_type: Optional[str]) -> Tuple[str, int]:
    """(status, completion percentage) for a document's persisted fields."""
    if not has_pdf:
        return STATUS_DRAFT, 0
    if not fields:
        return STATUS_DRAFT, 25
    signature_fields = [f for f in fields if _is_signature(f)]
    if not signature_fields:
        return STATUS_DRAFT, 75
    if signature_type == MULTI_SIGNATURE_TYPE and len(signature_fields) < 2:
        return STATUS_DRAFT, 85
    return STATUS_READY, 100


def signature_type_for(template: Dict[str, Any]) -> str:
    signers = template.get("signers") or []
    if not signers:
        # read-backs without a signer list are judged by their signature fields
        signers = collect_signer_ids(iter_configs(template.get("schemas")))
    if template.get("multiSignature") or len(signers) > 1:
        return MULTI_SIGNATURE_TYPE
    return "single"
