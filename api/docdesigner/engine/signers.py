import logging
import random
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

PRIMARY_SIGNER_COLOR = "#1890ff"
SECONDARY_SIGNER_COLOR = "#52c41a"
MULTI_SIGNATURE_TYPE = "multi"
# owner of signature fields placed before any signer was assigned
DEFAULT_SIGNER_ID = "signer_1"


def signer_color(index: int, rng: Optional[random.Random] = None) -> str:
    if index == 0:
        return PRIMARY_SIGNER_COLOR
    if index == 1:
        return SECONDARY_SIGNER_COLOR
    rng = rng or random
    return "#%06x" % rng.randrange(0x1000000)


def field_signer_id(field: Dict[str, Any]) -> Optional[str]:
    """signerId of a widget config, or of a persisted Field's properties."""
    signer_id = field.get("signerId")
    if not signer_id and isinstance(field.get("properties"), dict):
        signer_id = field["properties"].get("signerId")
    return signer_id or None


def collect_signer_ids(fields: Iterable[Dict[str, Any]]) -> List[str]:
    seen: List[str] = []
    for field in fields:
        if not isinstance(field, dict) or field.get("type") != "signature":
            continue
        signer_id = field_signer_id(field) or DEFAULT_SIGNER_ID
        if signer_id not in seen:
            seen.append(signer_id)
    return seen


def assign_default_signer(configs: Iterable[Dict[str, Any]]) -> None:
    """Point unassigned signature configs at the default signer, in place."""
    for config in configs:
        if config.get("type") == "signature" and not field_signer_id(config):
            config["signerId"] = DEFAULT_SIGNER_ID


def derive_signers(
    fields: Iterable[Dict[str, Any]],
    explicit_signers: Optional[List[Dict[str, Any]]] = None,
    signature_type: Optional[str] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[List[Dict[str, Any]], bool]:
    """Return ``(signers, multi_signature)`` for a document's fields.

    Explicit signers win unchanged. Otherwise one signer is synthesized per
    distinct ``signerId`` on signature fields, in first-seen order. The
    document-level ``signature_type`` only decides the flag when no signer
    could be derived at all.
    """
    if explicit_signers:
        return list(explicit_signers), len(explicit_signers) > 1

    signers = [
        {
            "id": signer_id,
            "name": f"Signer {index + 1}",
            "email": "",
            "role": "",
            "color": signer_color(index, rng),
        }
        for index, signer_id in enumerate(collect_signer_ids(fields))
    ]
    if signers:
        multi_signature = len(signers) > 1
    else:
        multi_signature = signature_type == MULTI_SIGNATURE_TYPE
    logger.info("derived %d signer(s) from signature fields, multiSignature=%s", len(signers), multi_signature)
    return signers, multi_signature
