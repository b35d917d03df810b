#catalog.py
import os
import yaml
from typing import Any, Dict, List, Optional

from .models import FieldDefinition, TrackedField
from .settings import (
    DOCUMENT_TYPES_CONFIG_PATH,
    FIELDS_CONFIG_DIR,
    TRACKED_FIELDS_CONFIG_PATH,
    get_logger,
)

logger = get_logger("xref_engine.catalog")

DEFAULT_CATEGORY = "Default"


class CatalogError(ValueError):
    """Static configuration that cannot be turned into a catalog."""


# -------------------------------------------------
# YAML
# -------------------------------------------------
def _read_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise CatalogError(f"Catalog file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise CatalogError(f"Malformed catalog {path}: {e}") from e
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {path} must be a mapping")
    return data


# -------------------------------------------------
# FIELD CATALOGS
# -------------------------------------------------
def parse_field_catalog(raw_fields: List[Dict[str, Any]], source: str = "<memory>") -> List[FieldDefinition]:
    """
    Typed FieldDefinitions from raw camelCase mappings.

    Unknown conditions only warn: the rule is kept and always evaluates
    to not-applicable, so new rule metadata never breaks a catalog.
    """
    fields = []
    seen = set()
    for i, raw in enumerate(raw_fields or []):
        if not isinstance(raw, dict) or not raw.get("id"):
            raise CatalogError(f"{source}: field #{i} has no id")
        for j, rule in enumerate(raw.get("rules") or []):
            if not isinstance(rule, dict) or not rule.get("id"):
                raise CatalogError(f"{source}: rule #{j} of field {raw['id']} has no id")
        try:
            field_def = FieldDefinition.from_dict(raw)
        except ValueError as e:
            raise CatalogError(f"{source}: field {raw['id']}: {e}") from e

        if field_def.id in seen:
            raise CatalogError(f"{source}: duplicate field id {field_def.id}")
        seen.add(field_def.id)

        for rule in field_def.rules:
            if not rule.is_known:
                logger.warning(
                    f"{source}: rule {rule.id} of field {field_def.id} has unknown "
                    f"condition {rule.raw_condition!r}; it will not be evaluated"
                )
        fields.append(field_def)
    return fields


def available_document_types(fields_dir: str = FIELDS_CONFIG_DIR) -> List[str]:
    if not os.path.isdir(fields_dir):
        return []
    return sorted(os.path.splitext(n)[0] for n in os.listdir(fields_dir) if n.endswith(".yaml"))


def has_field_catalog(document_type: str, fields_dir: str = FIELDS_CONFIG_DIR) -> bool:
    return document_type in available_document_types(fields_dir)


def load_field_catalog(document_type: str, fields_dir: str = FIELDS_CONFIG_DIR) -> List[FieldDefinition]:
    if not has_field_catalog(document_type, fields_dir):
        raise CatalogError(f"Unknown document type: {document_type}")
    path = os.path.join(fields_dir, f"{document_type}.yaml")
    return parse_field_catalog(_read_yaml(path).get("fields") or [], source=path)


def load_all_field_catalogs(fields_dir: str = FIELDS_CONFIG_DIR) -> Dict[str, List[FieldDefinition]]:
    return {t: load_field_catalog(t, fields_dir) for t in available_document_types(fields_dir)}


# -------------------------------------------------
# TRACKED FIELDS
# -------------------------------------------------
class TrackedFieldCatalog:
    def __init__(self, fields: List[TrackedField], base_complexity: Dict[str, float]):
        self.fields = fields
        self.base_complexity = base_complexity

    def base_score(self, category: Optional[str]) -> float:
        if category in self.base_complexity:
            return self.base_complexity[category]
        return self.base_complexity.get(DEFAULT_CATEGORY, 5)


def load_tracked_fields(path: str = TRACKED_FIELDS_CONFIG_PATH) -> TrackedFieldCatalog:
    data = _read_yaml(path)
    fields = []
    for i, raw in enumerate(data.get("fields") or []):
        if not isinstance(raw, dict) or not raw.get("name"):
            raise CatalogError(f"{path}: tracked field #{i} has no name")
        fields.append(TrackedField.from_dict(raw))
    base = {str(k): float(v) for k, v in (data.get("baseComplexity") or {}).items()}
    base.setdefault(DEFAULT_CATEGORY, 5.0)
    return TrackedFieldCatalog(fields, base)


# -------------------------------------------------
# DOCUMENT TYPES / SCORING
# -------------------------------------------------
def load_document_types(path: str = DOCUMENT_TYPES_CONFIG_PATH) -> Dict[str, Any]:
    """Document type list and scoring weights, as plain mappings."""
    data = _read_yaml(path)
    types = data.get("documentTypes") or []
    for i, t in enumerate(types):
        if not isinstance(t, dict) or not t.get("id"):
            raise CatalogError(f"{path}: document type #{i} has no id")
        for c in t.get("conditions") or []:
            if not isinstance(c, dict) or not c.get("field") or not c.get("operator"):
                raise CatalogError(f"{path}: document type {t['id']} has a malformed condition")
    return {
        "documentTypes": types,
        "scoringRules": data.get("scoringRules") or {},
    }
