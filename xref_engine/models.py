#models.py
# Catalog and extraction records arrive as camelCase mappings; from_dict/to_dict
# convert to and from the shape the review UI reads.

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class DataType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    BOOLEAN = "boolean"
    SSN = "ssn"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Condition(str, Enum):
    # equality / text
    MATCHES = "matches"
    EQUALS = "equals"
    CONTAINS = "contains"
    CONTAINS_ANY = "contains_any"
    NOT_CONTAINS = "not_contains"
    NOT_CONTAINS_ANY = "not_contains_any"
    NOT_EQUALS = "not_equals"
    NOT_IN_LIST = "not_in_list"
    IN_LIST = "in_list"
    VALID_VALUES = "valid_values"
    NOT_EMPTY = "not_empty"
    MATCHES_PATTERN = "matches_pattern"
    # numeric
    GREATER_THAN = "greater_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    WITHIN_PERCENTAGE = "within_percentage"
    PERCENTAGE_RANGE = "percentage_range"
    # dates
    BEFORE = "before"
    AFTER = "after"
    BEFORE_OR_EQUAL = "before_or_equal"
    ON_OR_AFTER = "on_or_after"
    ON_OR_BEFORE = "on_or_before"
    WITHIN_DAYS = "within_days"
    DAYS_BETWEEN = "days_between"
    # calculation family, advisory only
    CALCULATE_LTV = "calculate_ltv"
    CALCULATE_DTI = "calculate_dti"
    CALCULATE_TENURE = "calculate_tenure"
    CALCULATED_BALANCE = "calculated_balance"
    CALCULATED_MATCH = "calculated_match"
    CALCULATED_CORRECTLY = "calculated_correctly"
    MATCHES_W2_TOTAL = "matches_w2_total"
    PROJECTS_TO = "projects_to"
    CONSISTENT_WITH = "consistent_with"
    EQUALS_PERCENTAGE = "equals_percentage"
    REASONABLE_AVERAGE = "reasonable_average"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["Condition"]:
        if not raw:
            return None
        try:
            return cls(str(raw).strip())
        except ValueError:
            return None


class RuleOutcome(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    NA = "na"


class ItemStatus(str, Enum):
    VALID = "valid"
    WARNING = "warning"
    FIELD_ERROR = "field-error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    ItemStatus.VALID: 0,
    ItemStatus.WARNING: 1,
    ItemStatus.FIELD_ERROR: 2,
    ItemStatus.CRITICAL: 3,
}


class CellStatus(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"
    NA = "na"
    NO_LOS = "no-los"


@dataclass
class RuleDefinition:
    """One configured check attached to a field."""
    id: str
    rule_name: str = ""
    description: str = ""
    rule_type: Optional[str] = None  # grouping only, dispatch is by condition
    condition: Optional[Condition] = None
    raw_condition: Optional[str] = None
    value: Any = None
    min_value: Any = None
    max_value: Any = None
    min_percent: Any = None
    max_percent: Any = None
    min_days: Any = None
    max_days: Any = None
    compare_field: Optional[str] = None
    valid_values: Optional[List[Any]] = None
    invalid_values: Optional[List[Any]] = None
    pattern: Optional[str] = None
    tolerance: Any = None
    error_message: str = ""
    severity: Severity = Severity.WARNING

    @property
    def is_known(self) -> bool:
        return self.condition is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RuleDefinition":
        raw_condition = data.get("condition")
        if not raw_condition and data.get("validValues") is not None:
            raw_condition = Condition.VALID_VALUES.value
        return cls(
            id=str(data["id"]),
            rule_name=data.get("ruleName") or "",
            description=data.get("description") or "",
            rule_type=data.get("ruleType"),
            condition=Condition.parse(raw_condition),
            raw_condition=raw_condition,
            value=data.get("value"),
            min_value=data.get("minValue"),
            max_value=data.get("maxValue"),
            min_percent=data.get("minPercent"),
            max_percent=data.get("maxPercent"),
            min_days=data.get("minDays"),
            max_days=data.get("maxDays"),
            compare_field=data.get("compareField"),
            valid_values=data.get("validValues"),
            invalid_values=data.get("invalidValues"),
            pattern=data.get("pattern"),
            tolerance=data.get("tolerance"),
            error_message=data.get("errorMessage") or "",
            severity=Severity(data.get("severity") or Severity.WARNING.value),
        )


@dataclass
class FieldDefinition:
    """One extractable datum for a document type."""
    id: str
    field_name: str
    data_type: DataType = DataType.STRING
    required: bool = False
    byte_los_mapping: Optional[str] = None
    rules: List[RuleDefinition] = field(default_factory=list)
    description: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldDefinition":
        return cls(
            id=str(data["id"]),
            field_name=data.get("fieldName") or str(data["id"]),
            data_type=DataType(data.get("dataType") or DataType.STRING.value),
            required=bool(data.get("required", False)),
            byte_los_mapping=data.get("byteLOSMapping"),
            rules=[RuleDefinition.from_dict(r) for r in data.get("rules") or []],
            description=data.get("description") or "",
        )


@dataclass
class DocumentIssue:
    """A document-level signal produced upstream of the engine."""
    message: str
    rule: Optional[str] = None
    field: Optional[str] = None
    severity: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentIssue":
        return cls(
            message=data.get("message") or "",
            rule=data.get("rule"),
            field=data.get("field"),
            severity=data.get("severity"),
        )


@dataclass
class ExtractedDocument:
    """One uploaded document's extraction result."""
    document_id: str
    document_type: str
    data: Dict[str, Any] = field(default_factory=dict)
    issues: List[DocumentIssue] = field(default_factory=list)
    warnings: List[DocumentIssue] = field(default_factory=list)
    file_name: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], position: Optional[int] = None) -> "ExtractedDocument":
        # accepts both the flat shape and the upload record the API stores
        document_id = raw.get("id") or raw.get("documentId") or raw.get("_id")
        if not document_id:
            if position is None:
                raise ValueError(f"Extracted document has no id: {raw.get('fileName') or raw.get('documentType')!r}")
            document_id = f"document-{position + 1}"
        extracted = raw.get("extractedData") or {}
        data = raw.get("data")
        if data is None:
            data = extracted.get("data") or {}
        results = raw.get("validationResults") or {}
        issues = raw.get("issues", results.get("issues")) or []
        warnings = raw.get("warnings", results.get("warnings")) or []
        return cls(
            document_id=str(document_id),
            document_type=raw.get("documentType") or "",
            data=dict(data),
            issues=[i if isinstance(i, DocumentIssue) else DocumentIssue.from_dict(i) for i in issues],
            warnings=[w if isinstance(w, DocumentIssue) else DocumentIssue.from_dict(w) for w in warnings],
            file_name=raw.get("fileName"),
        )


@dataclass
class LoanComparison:
    has_loan_data: bool
    loan_value: Any = None
    matches: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"hasLoanData": self.has_loan_data, "loanValue": self.loan_value, "matches": self.matches}


@dataclass
class RuleResult:
    rule_id: str
    outcome: RuleOutcome
    message: str = ""
    severity: Optional[Severity] = None
    advisory: bool = False

    @property
    def failed(self) -> bool:
        return self.outcome == RuleOutcome.FAIL


@dataclass
class ValidationItem:
    """One classified result, per field or per document-level issue."""
    status: ItemStatus
    message: str = ""
    field_id: Optional[str] = None
    field_name: Optional[str] = None
    value: Any = None
    rule: Optional[str] = None
    severity: Optional[Severity] = None
    loan_comparison: Optional[LoanComparison] = None

    @property
    def rank(self) -> int:
        return self.status.rank

    @property
    def title(self) -> str:
        if self.field_name:
            return self.field_name
        if self.status == ItemStatus.CRITICAL:
            return "Critical Issue"
        if self.status == ItemStatus.WARNING:
            return "Warning"
        return self.field_id or ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fieldId": self.field_id,
            "title": self.title,
            "status": self.status.value,
            "severity": self.rank,
            "ruleSeverity": self.severity.value if self.severity else None,
            "message": self.message,
            "rule": self.rule,
            "value": self.value,
            "loanComparison": self.loan_comparison.to_dict() if self.loan_comparison else None,
        }


@dataclass
class TrackedField:
    """A row of the cross-document matrix."""
    name: str
    label: str
    byte_los_path: Optional[str] = None
    category: str = "Default"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TrackedField":
        return cls(
            name=str(data["name"]),
            label=data.get("label") or str(data["name"]),
            byte_los_path=data.get("byteLOSPath"),
            category=data.get("category") or "Default",
        )


@dataclass
class MatrixCell:
    status: CellStatus
    doc_value: Any = None
    los_value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "docValue": self.doc_value, "losValue": self.los_value}
