"""
Per-type defaulting for widget-native field configs.

Every field type the designer understands is registered in ``_NORMALIZERS``
with a function that fills in the properties that type needs to render and
validate. Geometry is repaired afterwards for all types. Nothing in here
raises: malformed data is fixed in place on a copy and logged.
"""

import copy
import logging
import re
from datetime import date
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TEXT_CONTENT = "Text Field"
DEFAULT_VARIABLE_TEXT = "Variable Text {variable}"
DEFAULT_OPTIONS = ["Option 1", "Option 2"]
DEFAULT_DATE_FORMAT = "MM/dd/yyyy"
DEFAULT_QR_CONTENT = "https://example.com"
DEFAULT_BARCODE_CONTENT = "123456789"

DEFAULT_WIDTH = 100
DEFAULT_HEIGHT = 20
DEFAULT_QR_SIZE = 50
QR_MAX_CONTENT_LENGTH = 2000
QR_SQUARE_TOLERANCE = 5
QR_TYPES = ("qr", "qrcode", "QR")

TEXT_STYLE_DEFAULTS = {
    "fontSize": 13,
    "fontColor": "#000000",
    "fontName": "Roboto",
    "alignment": "left",
}

_DATE_TOKENS = {
    "yyyy": "%Y",
    "yy": "%y",
    "MM": "%m",
    "dd": "%d",
    "HH": "%H",
    "mm": "%M",
    "ss": "%S",
}
_DATE_TOKEN_RE = re.compile("|".join(_DATE_TOKENS))

FieldConfig = Dict[str, Any]


def _fill(config: FieldConfig, key: str, value: Any) -> None:
    # missing, None, "", 0 and empty collections all count as unset
    if not config.get(key):
        config[key] = value


def _fill_undefined(config: FieldConfig, key: str, value: Any) -> None:
    if config.get(key) is None:
        config[key] = value


def _first_set(config: FieldConfig, *keys: str, default: Any = "") -> Any:
    for key in keys:
        if config.get(key):
            return config[key]
    return default


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_date(day: date, pattern: str) -> str:
    """Render ``day`` using a designer date pattern such as ``MM/dd/yyyy``."""
    strftime_pattern = _DATE_TOKEN_RE.sub(lambda m: _DATE_TOKENS[m.group(0)], pattern.replace("%", "%%"))
    return day.strftime(strftime_pattern)


def _apply_text_style(config: FieldConfig) -> None:
    for key, value in TEXT_STYLE_DEFAULTS.items():
        _fill(config, key, value)


def _normalize_text(config: FieldConfig) -> None:
    config["content"] = _first_set(config, "content", "text", default=DEFAULT_TEXT_CONTENT)
    _apply_text_style(config)


def _normalize_multi_variable_text(config: FieldConfig) -> None:
    # text is the display template, content the JSON map of variable values
    _fill(config, "text", DEFAULT_VARIABLE_TEXT)
    _fill(config, "variables", [])
    _fill(config, "content", "{}")
    _apply_text_style(config)


def _normalize_signature(config: FieldConfig) -> None:
    _fill(config, "content", "")
    _fill(config, "fontSize", 13)


def _normalize_date_time(config: FieldConfig) -> None:
    _fill(config, "format", DEFAULT_DATE_FORMAT)
    if not config.get("content"):
        config["content"] = format_date(date.today(), config["format"])
    _apply_text_style(config)


def _normalize_select(config: FieldConfig) -> None:
    _fill(config, "options", list(DEFAULT_OPTIONS))
    if not config.get("content"):
        options = config["options"]
        config["content"] = options[0] if options else ""
    _fill(config, "fontSize", 13)


def _normalize_checkbox(config: FieldConfig) -> None:
    _fill_undefined(config, "content", False)


def _normalize_image(config: FieldConfig) -> None:
    _fill(config, "content", "")


def _normalize_qr(config: FieldConfig) -> None:
    config["content"] = _first_set(config, "content", "text", default=DEFAULT_QR_CONTENT)
    _fill(config, "qrType", "url")
    _fill(config, "errorCorrectionLevel", "M")
    _fill_undefined(config, "margin", 4)
    _fill(config, "scale", 4)
    if not config.get("width") or not config.get("height"):
        config["width"] = config.get("width") or config.get("height") or DEFAULT_QR_SIZE
        config["height"] = config.get("height") or config["width"]


def _normalize_barcode(config: FieldConfig) -> None:
    config["content"] = _first_set(config, "content", "text", default=DEFAULT_BARCODE_CONTENT)
    _fill(config, "barcodeType", "CODE128")
    _fill_undefined(config, "displayValue", True)
    _fill(config, "fontSize", 10)


def _normalize_line(config: FieldConfig) -> None:
    _fill(config, "content", "")
    _fill(config, "lineWidth", 1)
    _fill(config, "lineColor", "#000000")
    _fill(config, "lineStyle", "solid")


def _normalize_rectangle(config: FieldConfig) -> None:
    _fill(config, "content", "")
    _fill(config, "borderWidth", 1)
    _fill(config, "borderColor", "#000000")
    _fill(config, "fillColor", "transparent")


def _normalize_table(config: FieldConfig) -> None:
    _fill(config, "content", "")
    _fill(config, "rows", 3)
    _fill(config, "columns", 3)
    _fill(config, "cellPadding", 2)
    _fill(config, "borderWidth", 1)
    _fill(config, "fontSize", 10)


def _normalize_unknown(config: FieldConfig) -> None:
    config["content"] = _first_set(config, "content", "text", default="")
    _fill(config, "fontSize", 13)


_NORMALIZERS: Dict[str, Callable[[FieldConfig], None]] = {
    "text": _normalize_text,
    "multiVariableText": _normalize_multi_variable_text,
    "signature": _normalize_signature,
    "dateTime": _normalize_date_time,
    "select": _normalize_select,
    "dropdown": _normalize_select,
    "radio": _normalize_select,
    "checkbox": _normalize_checkbox,
    "image": _normalize_image,
    "barcode": _normalize_barcode,
    "line": _normalize_line,
    "rectangle": _normalize_rectangle,
    "rect": _normalize_rectangle,
    "table": _normalize_table,
}
_NORMALIZERS.update({qr_type: _normalize_qr for qr_type in QR_TYPES})


def _repair_geometry(config: FieldConfig, label: str) -> None:
    position = config.get("position")
    position = dict(position) if isinstance(position, dict) else {}
    for axis in ("x", "y"):
        value = position.get(axis)
        if not _is_number(value):
            if value is not None:
                logger.warning("field %s has non-numeric %s position (%r), using 0", label, axis, value)
            position[axis] = 0
        elif value < 0:
            logger.warning("field %s has negative %s position (%s), clamping to 0", label, axis, value)
            position[axis] = 0
    config["position"] = position

    for key, fallback in (("width", DEFAULT_WIDTH), ("height", DEFAULT_HEIGHT)):
        value = config.get(key)
        if _is_number(value) and value > 0:
            continue
        if value is not None:
            logger.warning("field %s has invalid %s (%r), using %s", label, key, value, fallback)
        config[key] = fallback

    _fill(config, "rotate", 0)
    _fill_undefined(config, "opacity", 1)
    _fill_undefined(config, "required", False)


def _enforce_qr_constraints(config: FieldConfig, label: str) -> None:
    content = config.get("content")
    if not content or content == "{}":
        logger.warning("QR field %s has empty content, using default", label)
        content = DEFAULT_QR_CONTENT
    content = str(content)
    if len(content) > QR_MAX_CONTENT_LENGTH:
        logger.warning("QR field %s content too long (%d chars), truncating", label, len(content))
        content = content[:QR_MAX_CONTENT_LENGTH]
    config["content"] = content

    width, height = config["width"], config["height"]
    if abs(width - height) > QR_SQUARE_TOLERANCE:
        logger.warning("QR field %s is %sx%s, making it square", label, width, height)
        size = max(width, height)
        config["width"] = size
        config["height"] = size


def normalize(field_config: FieldConfig, field_type: Optional[str] = None) -> FieldConfig:
    """Return a copy of ``field_config`` with every property ``field_type`` needs.

    ``field_type`` defaults to the config's own ``type``. Unrecognised types get
    generic content and font defaults. The input is never mutated, and running
    the result through again yields the same dict.
    """
    config = copy.deepcopy(field_config) if isinstance(field_config, dict) else {}
    field_type = field_type or config.get("type")
    label = config.get("name") or "<unnamed>"

    handler = _NORMALIZERS.get(field_type)
    if handler is None:
        logger.warning("unknown field type %r for field %s, applying generic defaults", field_type, label)
        handler = _normalize_unknown
    handler(config)

    _repair_geometry(config, label)
    if field_type in QR_TYPES:
        _enforce_qr_constraints(config, label)
    return config
