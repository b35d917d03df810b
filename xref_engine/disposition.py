#disposition.py
# Critical and warning items become reviewer work items. apply_action returns a
# new queue and never mutates the old one.

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from .models import ItemStatus, ValidationItem
from .settings import get_logger

logger = get_logger("xref_engine.disposition")


class DispositionError(ValueError):
    """An action that cannot be applied to the queue."""


class DispositionStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


class ActionKind(str, Enum):
    REQUEST_DOCUMENT = "request_document"
    CREATE_CONDITION = "create_condition"
    START = "start"
    OVERRIDE = "override"
    MARK_REVIEWED = "mark_reviewed"
    DISMISS = "dismiss"


OPEN_STATUSES = (DispositionStatus.OPEN, DispositionStatus.IN_PROGRESS)
CLOSED_STATUSES = (DispositionStatus.RESOLVED, DispositionStatus.DISMISSED)

# status each action moves a disposition to
_TRANSITIONS = {
    ActionKind.REQUEST_DOCUMENT: DispositionStatus.IN_PROGRESS,
    ActionKind.CREATE_CONDITION: DispositionStatus.IN_PROGRESS,
    ActionKind.START: DispositionStatus.IN_PROGRESS,
    ActionKind.OVERRIDE: DispositionStatus.RESOLVED,
    ActionKind.MARK_REVIEWED: DispositionStatus.RESOLVED,
    ActionKind.DISMISS: DispositionStatus.DISMISSED,
}

SUGGESTED_ACTIONS = {
    "documentNotExpired": "Request updated document that is not expired",
    "nameMatches": "Verify borrower name matches loan application or obtain corrected document",
    "statementNotTooOld": "Request more recent bank statement (within 60 days)",
    "largeDepositsNeedSourcing": "Request documentation for large deposits (gift letter, transfer confirmation, etc.)",
    "nsfFeesPresent": "Request letter of explanation for NSF/overdraft fees",
    "twoYearsRequired": "Request additional {document_type} to meet 2-year requirement",
    "coverageAdequate": "Request insurance quote with adequate coverage amount",
    "valueSupportsLoan": "Loan amount exceeds maximum LTV - reduce loan amount or request higher appraisal",
    "employmentActive": "Verify current employment status with employer",
    "verificationRecent": "Request updated verification of employment",
    "ytdIncomeConsistent": "Request explanation for income variance",
    "incomeDecline": "Request explanation for income decline year-over-year",
    "mustBeSigned": "Request signed copy of document",
    "publicRecordsFound": "Request explanation for public records found on credit report",
    "collectionsFound": "Provide proof of payment or explanation for collection accounts",
    "licenseActive": "Request current/renewed business license",
    "seasoningPeriodMet": "Verify bankruptcy seasoning period meets program guidelines",
}
DEFAULT_SUGGESTED_ACTION = "Please review and address this issue"

REQUIRES_NEW_DOCUMENT = frozenset({
    "documentNotExpired",
    "statementNotTooOld",
    "paystubRecent",
    "twoYearsRequired",
    "verificationRecent",
    "mustBeSigned",
    "licenseActive",
})


def suggested_action(rule: Optional[str], document_type: str = "") -> str:
    template = SUGGESTED_ACTIONS.get(rule or "")
    if template is None:
        return DEFAULT_SUGGESTED_ACTION
    return template.format(document_type=document_type or "document")


def requires_new_document(rule: Optional[str]) -> bool:
    return (rule or "") in REQUIRES_NEW_DOCUMENT


# -------------------------------------------------
# RECORDS
# -------------------------------------------------
@dataclass(frozen=True)
class DispositionAction:
    kind: ActionKind
    disposition_id: str
    actor: Optional[str] = None
    notes: str = ""
    document_type: Optional[str] = None  # for request_document
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Disposition:
    id: str
    loan_id: str
    document_id: str
    document_type: str
    title: str
    priority: Priority
    status: DispositionStatus = DispositionStatus.OPEN
    field_id: Optional[str] = None
    rule: Optional[str] = None
    severity: Optional[str] = None
    suggested_action: str = DEFAULT_SUGGESTED_ACTION
    requires_new_document: bool = False
    assigned_to: Optional[str] = None
    requested_document: Optional[str] = None
    condition_created: bool = False
    resolution: Optional[str] = None
    history: Tuple[Dict[str, Any], ...] = ()

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "loanId": self.loan_id,
            "documentId": self.document_id,
            "documentType": self.document_type,
            "title": self.title,
            "priority": self.priority.value,
            "status": self.status.value,
            "field": self.field_id,
            "rule": self.rule,
            "severity": self.severity,
            "suggestedAction": self.suggested_action,
            "requiresNewDocument": self.requires_new_document,
            "assignedTo": self.assigned_to,
            "requestedDocument": self.requested_document,
            "conditionCreated": self.condition_created,
            "resolution": self.resolution,
            "history": list(self.history),
        }


# -------------------------------------------------
# BUILD
# -------------------------------------------------
def build_dispositions(
    items: Iterable[ValidationItem],
    loan_id: str,
    document_id: str,
    document_type: str,
) -> Tuple[Disposition, ...]:
    """
    One open disposition per critical or warning item, in item order.

    Ids are stable for the same inputs so a re-run lines up with a
    previously saved queue.
    """
    out = []
    for item in items:
        if item.status == ItemStatus.CRITICAL:
            priority = Priority.HIGH
        elif item.status == ItemStatus.WARNING:
            priority = Priority.MEDIUM
        else:
            continue
        out.append(Disposition(
            id=f"disp-{document_id}-{len(out) + 1}",
            loan_id=loan_id,
            document_id=document_id,
            document_type=document_type,
            title=item.message,
            priority=priority,
            field_id=item.field_id,
            rule=item.rule,
            severity=item.status.value,
            suggested_action=suggested_action(item.rule, document_type),
            # only critical findings can force a replacement document
            requires_new_document=priority == Priority.HIGH and requires_new_document(item.rule),
        ))
    return tuple(out)


# -------------------------------------------------
# REDUCER
# -------------------------------------------------
def apply_action(queue: Tuple[Disposition, ...], action: DispositionAction) -> Tuple[Disposition, ...]:
    try:
        kind = ActionKind(action.kind)
    except ValueError as e:
        raise DispositionError(f"Unknown disposition action: {action.kind}") from e

    index = next((i for i, d in enumerate(queue) if d.id == action.disposition_id), None)
    if index is None:
        raise DispositionError(f"Disposition not found: {action.disposition_id}")

    current = queue[index]
    if not current.is_open:
        raise DispositionError(f"Disposition {current.id} is already {current.status.value}")

    target = _TRANSITIONS[kind]
    step = {
        "action": kind.value,
        "from": current.status.value,
        "to": target.value,
        "actor": action.actor,
        "notes": action.notes,
        "at": action.at.isoformat(),
    }
    changes: Dict[str, Any] = {"status": target, "history": current.history + (step,)}
    if action.actor:
        changes["assigned_to"] = action.actor
    if kind == ActionKind.REQUEST_DOCUMENT:
        changes["requested_document"] = action.document_type or current.document_type
    elif kind == ActionKind.CREATE_CONDITION:
        changes["condition_created"] = True
    elif kind == ActionKind.OVERRIDE:
        changes["resolution"] = action.notes or "overridden"
    elif kind == ActionKind.MARK_REVIEWED:
        changes["resolution"] = action.notes or "reviewed"

    logger.debug(f"{kind.value} on {current.id}: {current.status.value} -> {target.value}")
    updated = replace(current, **changes)
    return queue[:index] + (updated,) + queue[index + 1:]


# -------------------------------------------------
# VIEWS
# -------------------------------------------------
def filter_dispositions(queue: Iterable[Disposition], mode: str = "all") -> Tuple[Disposition, ...]:
    if mode == "all":
        return tuple(queue)
    if mode == "open":
        return tuple(d for d in queue if d.status in OPEN_STATUSES)
    if mode == "resolved":
        return tuple(d for d in queue if d.status in CLOSED_STATUSES)
    raise DispositionError(f"Unknown disposition filter: {mode}")


def queue_stats(queue: Iterable[Disposition]) -> Dict[str, int]:
    queue = tuple(queue)
    return {
        "total": len(queue),
        "open": sum(1 for d in queue if d.is_open),
        "resolved": sum(1 for d in queue if not d.is_open),
        "high": sum(1 for d in queue if d.is_open and d.priority == Priority.HIGH),
    }
