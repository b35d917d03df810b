#aggregator.py
# Classifies each catalogued field of one document against its rules and the
# loan record, then merges the issues and warnings produced upstream.

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .models import (
    DocumentIssue,
    ExtractedDocument,
    FieldDefinition,
    ItemStatus,
    LoanComparison,
    RuleResult,
    Severity,
    ValidationItem,
)
from .normalize import is_blank, normalize_string, stringify
from .resolver import ReviewContext, resolve_field_value, resolve_loan_path, resolve_operand
from .rules import evaluate
from .settings import get_logger

logger = get_logger("xref_engine.aggregator")

MISSING_MESSAGE = "Required field is missing or empty"

# failures whose message mentions any of these are extraction noise, not
# business problems, and never surface as field errors
FORMATTING_MARKERS = ("format", "pattern", "length", "invalid", "must match")

IssueLike = Union[DocumentIssue, Mapping[str, Any]]


def is_formatting_message(message: Optional[str]) -> bool:
    text = (message or "").lower()
    return any(marker in text for marker in FORMATTING_MARKERS)


def compare_with_loan(value: Any, loan_value: Any) -> LoanComparison:
    if is_blank(loan_value):
        return LoanComparison(has_loan_data=False)
    return LoanComparison(
        has_loan_data=True,
        loan_value=loan_value,
        matches=normalize_string(value) == normalize_string(loan_value),
    )


def evaluate_field(
    field_def: FieldDefinition,
    document: ExtractedDocument,
    loan: Optional[Dict[str, Any]],
    context: ReviewContext,
    field_ids: Sequence[str] = (),
) -> List[RuleResult]:
    value = resolve_field_value(document, field_def.id)
    results = []
    for rule in field_def.rules:
        operand = resolve_operand(rule, document, loan, context, field_ids)
        results.append(evaluate(rule, value, operand))
    return results


def classify_field(
    field_def: FieldDefinition,
    document: ExtractedDocument,
    loan: Optional[Dict[str, Any]],
    context: ReviewContext,
    field_ids: Sequence[str] = (),
) -> ValidationItem:
    value = resolve_field_value(document, field_def.id)
    comparison = None
    if field_def.byte_los_mapping:
        comparison = compare_with_loan(value, resolve_loan_path(loan, field_def.byte_los_mapping))

    item = ValidationItem(
        status=ItemStatus.VALID,
        field_id=field_def.id,
        field_name=field_def.field_name,
        value=value,
        loan_comparison=comparison,
    )

    # first match wins
    if comparison is not None and comparison.has_loan_data and not comparison.matches:
        item.status = ItemStatus.FIELD_ERROR
        item.message = f"Does not match loan application (expected: {stringify(comparison.loan_value)})"
        return item

    if is_blank(value) and field_def.rules:
        item.status = ItemStatus.FIELD_ERROR
        item.message = MISSING_MESSAGE
        return item

    results = evaluate_field(field_def, document, loan, context, field_ids)
    for rule, result in zip(field_def.rules, results):
        if result.failed and not is_formatting_message(result.message):
            item.status = ItemStatus.FIELD_ERROR
            item.message = result.message
            item.rule = rule.id
            item.severity = result.severity
            return item

    return item


def _issue_item(issue: IssueLike, status: ItemStatus, severity: Severity) -> ValidationItem:
    if not isinstance(issue, DocumentIssue):
        issue = DocumentIssue.from_dict(issue)
    return ValidationItem(
        status=status,
        message=issue.message,
        field_id=issue.field,
        rule=issue.rule,
        severity=severity,
    )


def validate_document(
    field_defs: Sequence[FieldDefinition],
    document: ExtractedDocument,
    loan: Optional[Dict[str, Any]],
    prior_issues: Optional[Iterable[IssueLike]] = None,
    prior_warnings: Optional[Iterable[IssueLike]] = None,
    context: Optional[ReviewContext] = None,
) -> List[ValidationItem]:
    """
    Classify every catalogued field of ``document`` and merge upstream signals.

    Extracted keys with no field definition are ignored. ``prior_issues``
    and ``prior_warnings`` default to the ones carried by the document and
    come through as ``critical`` and ``warning`` items unchanged.
    """
    context = context or ReviewContext()
    field_ids = [f.id for f in field_defs]
    items = [classify_field(f, document, loan, context, field_ids) for f in field_defs]

    if prior_issues is None:
        prior_issues = document.issues
    if prior_warnings is None:
        prior_warnings = document.warnings
    items.extend(_issue_item(i, ItemStatus.CRITICAL, Severity.CRITICAL) for i in prior_issues)
    items.extend(_issue_item(w, ItemStatus.WARNING, Severity.WARNING) for w in prior_warnings)

    logger.debug(
        f"Validated document {document.document_id} ({document.document_type}): "
        f"{len(field_defs)} fields, {len(items)} items"
    )
    return items


def advisory_notes(
    field_defs: Sequence[FieldDefinition],
    document: ExtractedDocument,
    loan: Optional[Dict[str, Any]],
    context: Optional[ReviewContext] = None,
) -> List[Dict[str, str]]:
    """Messages of calculation-family rules, which never pass or fail."""
    context = context or ReviewContext()
    field_ids = [f.id for f in field_defs]
    notes = []
    for f in field_defs:
        for result in evaluate_field(f, document, loan, context, field_ids):
            if result.advisory and result.message:
                notes.append({"fieldId": f.id, "rule": result.rule_id, "message": result.message})
    return notes


# -------------------------------------------------
# VIEWS
# -------------------------------------------------
def sort_items(items: Iterable[ValidationItem]) -> List[ValidationItem]:
    return sorted(items, key=lambda i: i.rank, reverse=True)


_FILTERS = {
    "all": lambda i: True,
    "issues-only": lambda i: i.status != ItemStatus.VALID,
    "passed": lambda i: i.status == ItemStatus.VALID,
    "critical": lambda i: i.status == ItemStatus.CRITICAL,
    "warnings": lambda i: i.status == ItemStatus.WARNING,
    "field-errors": lambda i: i.status == ItemStatus.FIELD_ERROR,
}


def filter_items(items: Iterable[ValidationItem], mode: str = "all") -> List[ValidationItem]:
    predicate = _FILTERS.get(mode)
    if predicate is None:
        raise ValueError(f"Unknown filter: {mode}")
    return [i for i in items if predicate(i)]


def search_items(items: Iterable[ValidationItem], text: Optional[str]) -> List[ValidationItem]:
    needle = (text or "").strip().lower()
    if not needle:
        return list(items)

    def haystack(i: ValidationItem) -> List[str]:
        return [i.title, i.message, i.field_id or "", i.field_name or "", stringify(i.value), i.rule or ""]

    return [i for i in items if any(needle in h.lower() for h in haystack(i))]


def summarize(items: Iterable[ValidationItem]) -> Dict[str, int]:
    counts = {"total": 0, "valid": 0, "warning": 0, "field-error": 0, "critical": 0}
    for i in items:
        counts["total"] += 1
        counts[i.status.value] += 1
    counts["issues"] = counts["total"] - counts["valid"]
    return counts
