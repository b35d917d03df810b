#resolver.py
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Mapping, Optional, Sequence

from .models import ExtractedDocument, RuleDefinition

TODAY = "today"
APPLICATION_DATE = "applicationDate"
SENTINELS = (TODAY, APPLICATION_DATE)

_SEGMENT = re.compile(r"^([A-Za-z_$][\w$]*)(?:\[(\d+)\])?$")

# -------------------------------------------------
# REVIEW CONTEXT
# -------------------------------------------------
@dataclass(frozen=True)
class ReviewContext:
    """Values behind the rule sentinels for one evaluation pass."""
    application_date: Any = None
    today: date = field(default_factory=date.today)


# -------------------------------------------------
# PATH RESOLVER (DOT-WISE, WITH [idx])
# -------------------------------------------------
class PathResolver:
    def walk(self, record: Any, path: Optional[str]) -> Any:
        if record is None or not isinstance(path, str) or not path.strip():
            return None
        cur = record
        for part in path.strip().split("."):
            m = _SEGMENT.match(part)
            if not m:
                return None
            name, idx = m.group(1), m.group(2)
            if not isinstance(cur, Mapping) or name not in cur:
                return None
            cur = cur[name]
            if idx is not None:
                if not isinstance(cur, Sequence) or isinstance(cur, (str, bytes)):
                    return None
                i = int(idx)
                if i >= len(cur):
                    return None
                cur = cur[i]
            if cur is None:
                return None
        return cur

    def resolve(self, record: Any, path: Optional[str]) -> Any:
        value = self.walk(record, path)
        name = compose_person_name(value)
        return name if name is not None else value


def compose_person_name(value: Any) -> Optional[str]:
    """
    "first [middle ]last" for a person-name object, None for anything else.

    Kept out of PathResolver.walk so that generic path lookups never
    see the composed string.
    """
    if not isinstance(value, Mapping):
        return None
    first = value.get("firstName")
    last = value.get("lastName")
    if not first or not last:
        return None
    middle = value.get("middleName")
    return f"{first} {middle + ' ' if middle else ''}{last}"


_resolver = PathResolver()


def resolve_loan_path(record: Any, path: Optional[str]) -> Any:
    return _resolver.resolve(record, path)


def resolve_field_value(document: ExtractedDocument, field_id: str) -> Any:
    if document is None or not document.data:
        return None
    return document.data.get(field_id)


def resolve_sentinel(name: str, context: ReviewContext) -> Any:
    if name == TODAY:
        return context.today
    if name == APPLICATION_DATE:
        return context.application_date
    return None


def resolve_operand(
    rule: RuleDefinition,
    document: ExtractedDocument,
    loan: Optional[Dict[str, Any]],
    context: ReviewContext,
    field_ids: Sequence[str] = (),
) -> Any:
    """
    Comparison operand of a rule.

    compareField is tried as a sentinel, then as a catalogued field of
    the same document, then as a loan path. Extracted keys with no field
    definition never serve as operands. Without compareField the rule's own
    ``value`` is the operand.
    """
    ref = rule.compare_field
    if not ref:
        return rule.value
    if ref in SENTINELS:
        return resolve_sentinel(ref, context)
    if ref in field_ids:
        return resolve_field_value(document, ref)
    return resolve_loan_path(loan, ref)
