"""
Conversion between persisted fields and the designer's widget template.

Persisted fields are a flat list of ``{id, type, name, position, properties}``
dicts where ``position`` carries ``{x, y, width, height, page}``. The widget
template groups widget-native field configs by page under ``schemas`` and
carries the signer list next to them.
"""

import copy
import logging
import uuid
from typing import Any, Dict, Iterator, List, Optional

from .normalizer import normalize
from .signers import assign_default_signer, derive_signers

logger = logging.getLogger(__name__)

MULTI_VARIABLE_TEXT = "multiVariableText"

# stored next to the widget config but never handed to the widget
PERSISTED_ONLY_PROPERTIES = {"_originalConfig", "placeholder", "validation"}

# layout lives on the persisted Field itself, not in its properties
LAYOUT_KEYS = {"id", "name", "type", "position", "width", "height", "page", "x", "y", "_originalConfig"}

# snake_case names written by older clients
PROPERTY_ALIASES = {
    "signer_id": "signerId",
    "font_size": "fontSize",
    "font_color": "fontColor",
    "font_family": "fontName",
}


def new_field_id() -> str:
    return f"field_{uuid.uuid4().hex}"


def iter_configs(schemas: Any) -> Iterator[Dict[str, Any]]:
    if not isinstance(schemas, list):
        return
    for page in schemas:
        if not isinstance(page, list):
            continue
        for config in page:
            if isinstance(config, dict):
                yield config


def count_fields(schemas: Any) -> int:
    return sum(1 for _ in iter_configs(schemas))


def _page_index(field: Dict[str, Any]) -> int:
    page = (field.get("position") or {}).get("page", 0)
    if isinstance(page, float) and page.is_integer():
        page = int(page)
    if not isinstance(page, int) or isinstance(page, bool) or page < 0:
        logger.warning("field %s has invalid page %r, placing it on page 0", field.get("id"), page)
        return 0
    return page


def _text_or_empty(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value:
            return value
    return ""


def field_to_config(field: Dict[str, Any], page_index: int, field_index: int) -> Dict[str, Any]:
    properties = field.get("properties") or {}
    position = field.get("position") or {}
    field_type = field.get("type") or "text"

    original = properties.get("_originalConfig")
    config = copy.deepcopy(original) if isinstance(original, dict) else {}
    for key, value in properties.items():
        if key in PERSISTED_ONLY_PROPERTIES or value is None:
            continue
        config[key] = copy.deepcopy(value)
    for legacy, widget_key in PROPERTY_ALIASES.items():
        if legacy in config:
            value = config.pop(legacy)
            config.setdefault(widget_key, value)

    if field_type != MULTI_VARIABLE_TEXT and not config.get("content"):
        fallback = _text_or_empty(properties.get("placeholder"), properties.get("text"))
        if fallback:
            config["content"] = fallback

    config.pop("page", None)
    if field.get("id"):
        config["id"] = field["id"]
    config["name"] = field.get("name") or config.get("name") or f"field_{page_index}_{field_index}"
    config["type"] = field_type
    config["position"] = {"x": position.get("x", 0), "y": position.get("y", 0)}
    config["width"] = position.get("width")
    config["height"] = position.get("height")
    return normalize(config, field_type)


def to_template(
    fields: List[Dict[str, Any]],
    base_pdf: Any,
    saved_template: Optional[Dict[str, Any]] = None,
    explicit_signers: Optional[List[Dict[str, Any]]] = None,
    signature_type: Optional[str] = None,
    page_count: Optional[int] = None,
) -> Dict[str, Any]:
    """Build a complete widget template from persisted fields.

    Pages run from 0 to the highest page any field sits on (or the document's
    page count, if larger) with no gaps. Signers come from ``explicit_signers``,
    then from the saved template, then are derived from signature fields.
    """
    pages: Dict[int, List[Dict[str, Any]]] = {}
    for field in fields:
        pages.setdefault(_page_index(field), []).append(field)

    total_pages = max(max(pages) + 1 if pages else 1, page_count or 0)
    schemas = [
        [field_to_config(field, page, index) for index, field in enumerate(pages.get(page, []))]
        for page in range(total_pages)
    ]

    for page in schemas:
        assign_default_signer(page)

    saved = saved_template if isinstance(saved_template, dict) else {}
    metadata = saved.get("metadata") if isinstance(saved.get("metadata"), dict) else None
    if not explicit_signers and isinstance(saved.get("signers"), list):
        explicit_signers = saved["signers"]
    if signature_type is None and metadata:
        signature_type = metadata.get("signature_type")
    signers, multi_signature = derive_signers(list(iter_configs(schemas)), explicit_signers, signature_type)

    template = {
        "basePdf": base_pdf,
        "schemas": schemas,
        "signers": signers,
        "multiSignature": multi_signature,
    }
    if metadata is not None:
        template["metadata"] = copy.deepcopy(metadata)
    return template


def normalize_template(template: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``template`` with every field config fully defaulted."""
    result = copy.deepcopy(template)
    schemas = result.get("schemas")
    if not isinstance(schemas, list):
        result["schemas"] = [[]]
        return result
    normalized_pages = []
    for page_index, page in enumerate(schemas):
        if not isinstance(page, list):
            logger.warning("page %d of template is not a list, replacing with an empty page", page_index)
            normalized_pages.append([])
            continue
        normalized_pages.append([normalize(config) for config in page if isinstance(config, dict)])
    result["schemas"] = normalized_pages
    return result


def config_to_field(config: Dict[str, Any], page_index: int, field_index: int) -> Dict[str, Any]:
    field_type = config.get("type") or "text"
    source = dict(config)
    if not isinstance(source.get("position"), dict) and ("x" in source or "y" in source):
        source["position"] = {"x": source.get("x"), "y": source.get("y")}
    normalized = normalize(source, field_type)

    properties = {key: value for key, value in normalized.items() if key not in LAYOUT_KEYS}
    if field_type == MULTI_VARIABLE_TEXT:
        # display template and variable values stay separate
        properties["text"] = normalized["text"]
        properties["content"] = normalized["content"]
        properties["variables"] = normalized["variables"]
        properties["placeholder"] = _text_or_empty(config.get("placeholder"))
    else:
        properties["placeholder"] = _text_or_empty(config.get("placeholder"), config.get("content"), config.get("text"))
    properties["_originalConfig"] = copy.deepcopy(config)

    return {
        "id": config.get("id") or new_field_id(),
        "type": field_type,
        "name": config.get("name") or config.get("key") or f"field_{page_index}_{field_index}",
        "position": {
            "x": normalized["position"]["x"],
            "y": normalized["position"]["y"],
            "width": normalized["width"],
            "height": normalized["height"],
            "page": page_index,
        },
        "properties": properties,
    }


def to_schema(template: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flatten a widget template into persisted fields, in page then field order.

    The page of each field is the index of the page array holding it.
    """
    schemas = template.get("schemas") if isinstance(template, dict) else None
    if not isinstance(schemas, list):
        logger.warning("template has no schemas array, nothing to flatten")
        return []
    fields = []
    for page_index, page in enumerate(schemas):
        if not isinstance(page, list):
            logger.warning("page %d of template is not a list, skipping", page_index)
            continue
        for field_index, config in enumerate(page):
            if not isinstance(config, dict):
                logger.warning("skipping non-object field %d on page %d", field_index, page_index)
                continue
            fields.append(config_to_field(config, page_index, field_index))
    return fields
