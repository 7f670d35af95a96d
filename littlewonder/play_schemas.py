"""Normalization of developmental play-schema labels to the canonical key set."""
from __future__ import annotations

import re
import unicodedata
from typing import Any, List, Optional

from .metrics import record_unmapped_schema

VALID_SCHEMA_KEYS = (
    "trajectory",
    "rotation",
    "enclosure",
    "enveloping",
    "transporting",
    "connecting",
    "transforming",
    "positioning",
)

SCHEMA_INFO = {
    "trajectory": {"label_es": "Trayectoria", "label_en": "Trajectory", "emoji": "➰"},
    "rotation": {"label_es": "Rotación", "label_en": "Rotation", "emoji": "🌀"},
    "enclosure": {"label_es": "Envolvimiento espacial", "label_en": "Enclosure", "emoji": "📦"},
    "enveloping": {"label_es": "Envoltura", "label_en": "Enveloping", "emoji": "🎁"},
    "transporting": {"label_es": "Transporte", "label_en": "Transporting", "emoji": "🧺"},
    "connecting": {"label_es": "Conexión", "label_en": "Connecting", "emoji": "🔗"},
    "transforming": {"label_es": "Transformación", "label_en": "Transforming", "emoji": "🧪"},
    "positioning": {"label_es": "Posicionamiento", "label_en": "Positioning", "emoji": "📐"},
}

# Keys are already sanitized (lowercase, no diacritics).
_LEGACY_SCHEMA_MAP = {
    "trajectory": "trajectory",
    "trayectoria": "trajectory",
    "trayectorias": "trajectory",
    "throwing": "trajectory",
    "launching": "trajectory",
    "lanzar": "trajectory",
    "rotation": "rotation",
    "rotacion": "rotation",
    "rotating": "rotation",
    "spinning": "rotation",
    "girar": "rotation",
    "enclosure": "enclosure",
    "enclose": "enclosure",
    "enclosing": "enclosure",
    "containing": "enclosure",
    "container": "enclosure",
    "encerrar": "enclosure",
    "envolvimiento espacial": "enclosure",
    "enveloping": "enveloping",
    "envelope": "enveloping",
    "wrapping": "enveloping",
    "envolver": "enveloping",
    "envoltura": "enveloping",
    "transporting": "transporting",
    "transport": "transporting",
    "transporte": "transporting",
    "transportar": "transporting",
    "carrying": "transporting",
    "connecting": "connecting",
    "connection": "connecting",
    "conexion": "connecting",
    "conectar": "connecting",
    "linking": "connecting",
    "transforming": "transforming",
    "transformation": "transforming",
    "transformacion": "transforming",
    "transformar": "transforming",
    "mixing": "transforming",
    "positioning": "positioning",
    "position": "positioning",
    "posicionamiento": "positioning",
    "placing": "positioning",
    "ordering": "positioning",
    "ordenar": "positioning",
}


def _sanitize(value: str) -> str:
    text = unicodedata.normalize("NFD", value.lower().strip())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.replace("schema", "").replace("esquema", "")
    text = re.sub(r"[^a-z\s_-]", " ", text)
    text = re.sub(r"[_-]+", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_schema_key(value: Any) -> Optional[str]:
    """Map a free-text schema label to its canonical key, or None when it does not map."""

    if not isinstance(value, str):
        return None
    clean = _sanitize(value)
    if not clean:
        return None
    direct = _LEGACY_SCHEMA_MAP.get(clean)
    if direct:
        return direct
    collapsed = _LEGACY_SCHEMA_MAP.get(clean.replace(" ", ""))
    if collapsed:
        return collapsed
    record_unmapped_schema(value.strip())
    return None


def normalize_schema_list(values: Any) -> List[str]:
    if not isinstance(values, (list, tuple)):
        return []
    result: List[str] = []
    for value in values:
        key = normalize_schema_key(value)
        if key and key not in result:
            result.append(key)
    return result


def is_schema_key(value: Any) -> bool:
    return normalize_schema_key(value) is not None
