#scorecard.py
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .disposition import Disposition
from .models import ExtractedDocument, ItemStatus, ValidationItem
from .normalize import parse_number
from .resolver import PathResolver
from .settings import get_logger

logger = get_logger("xref_engine.scorecard")

DEFAULT_WEIGHTS = {
    "documentCompleteness": 30,
    "dataAccuracy": 25,
    "complianceIssues": 20,
}
DEFAULT_READY_BONUS = 25

_resolver = PathResolver()


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# -------------------------------------------------
# REQUIRED DOCUMENTS
# -------------------------------------------------
def _gt(a, b) -> bool:
    x, y = parse_number(a), parse_number(b)
    return x is not None and y is not None and x > y


def _lt(a, b) -> bool:
    x, y = parse_number(a), parse_number(b)
    return x is not None and y is not None and x < y


def _contains(a, b) -> bool:
    if a is None:
        return False
    return str(b).lower() in str(a).lower()


_OPERATORS = {
    "equals": lambda a, b: a == b,
    "greaterThan": _gt,
    "lessThan": _lt,
    "in": lambda a, b: isinstance(b, list) and a in b,
    "contains": _contains,
}


def condition_holds(condition: Mapping[str, Any], loan: Optional[Dict[str, Any]]) -> bool:
    op = _OPERATORS.get(condition.get("operator"))
    if op is None:
        return False
    return op(_resolver.walk(loan, condition.get("field")), condition.get("value"))


def required_documents(document_types: Sequence[Mapping[str, Any]], loan: Optional[Dict[str, Any]]) -> List[Mapping[str, Any]]:
    required = []
    for t in document_types:
        conditions = t.get("conditions") or []
        if not conditions:
            if t.get("required"):
                required.append(t)
        elif all(condition_holds(c, loan) for c in conditions):
            required.append(t)
    return required


# -------------------------------------------------
# SCORECARD
# -------------------------------------------------
def _is_valid_document(items: Iterable[ValidationItem]) -> bool:
    return not any(i.status in (ItemStatus.CRITICAL, ItemStatus.FIELD_ERROR) for i in items)


def generate_scorecard(
    loan: Optional[Dict[str, Any]],
    documents: Sequence[ExtractedDocument],
    items_by_document: Mapping[str, List[ValidationItem]],
    document_types: Sequence[Mapping[str, Any]],
    scoring_rules: Optional[Mapping[str, Any]] = None,
    conditions: Iterable[Disposition] = (),
) -> Dict[str, Any]:
    """
    Loan readiness scores.

    ``items_by_document`` maps document id to its validation items;
    ``conditions`` are the dispositions raised for the loan, of which
    the open ones block closing.
    """
    scoring_rules = scoring_rules or {}

    def weight(key: str) -> float:
        return (scoring_rules.get(key) or {}).get("weight", DEFAULT_WEIGHTS[key])

    ready_bonus = scoring_rules.get("readyToCloseBonus", DEFAULT_READY_BONUS)

    required = required_documents(document_types, loan)
    received_types = {d.document_type for d in documents}
    missing = [t for t in required if t.get("id") not in received_types]
    if required:
        completeness = round_half_up((len(required) - len(missing)) / len(required) * 100)
    else:
        completeness = 100

    valid_docs = [d for d in documents if _is_valid_document(items_by_document.get(d.document_id, []))]
    accuracy = round_half_up(len(valid_docs) / len(documents) * 100) if documents else 0

    all_items = [i for d in documents for i in items_by_document.get(d.document_id, [])]
    critical = sum(1 for i in all_items if i.status == ItemStatus.CRITICAL)
    warning = sum(1 for i in all_items if i.status == ItemStatus.WARNING)
    compliance = max(0, 100 - critical * 10 - warning * 5)

    open_conditions = [c for c in conditions if c.is_open]
    ready = not missing and critical == 0 and not open_conditions

    overall = round_half_up(
        completeness * weight("documentCompleteness") / 100
        + accuracy * weight("dataAccuracy") / 100
        + compliance * weight("complianceIssues") / 100
        + (ready_bonus if ready else 0)
    )

    logger.debug(f"Scorecard: overall={overall} ready={ready} missing={len(missing)}")
    return {
        "loanId": _resolver.walk(loan, "loanId"),
        "overallScore": overall,
        "readyToClose": ready,
        "scores": {
            "documentCompleteness": {
                "score": completeness,
                "weight": weight("documentCompleteness"),
                "details": {
                    "total": len(required),
                    "received": len(required) - len(missing),
                    "missing": len(missing),
                },
            },
            "dataAccuracy": {
                "score": accuracy,
                "weight": weight("dataAccuracy"),
                "details": {
                    "total": len(documents),
                    "valid": len(valid_docs),
                    "invalid": len(documents) - len(valid_docs),
                },
            },
            "compliance": {
                "score": compliance,
                "weight": weight("complianceIssues"),
                "details": {
                    "criticalIssues": critical,
                    "warningIssues": warning,
                    "totalIssues": critical + warning,
                },
            },
        },
        "missingDocuments": [{"id": t.get("id"), "name": t.get("name")} for t in missing],
        "openConditions": len(open_conditions),
    }
