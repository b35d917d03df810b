#rules.py
import re
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import Condition, RuleDefinition, RuleOutcome, RuleResult
from .normalize import is_blank, normalize_string, parse_date, parse_number, stringify

ADVISORY_CONDITIONS = frozenset({
    Condition.CALCULATE_LTV,
    Condition.CALCULATE_DTI,
    Condition.CALCULATE_TENURE,
    Condition.CALCULATED_BALANCE,
    Condition.CALCULATED_MATCH,
    Condition.CALCULATED_CORRECTLY,
    Condition.MATCHES_W2_TOTAL,
    Condition.PROJECTS_TO,
    Condition.CONSISTENT_WITH,
    Condition.EQUALS_PERCENTAGE,
    Condition.REASONABLE_AVERAGE,
})


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _needles(values: Iterable[Any]) -> List[str]:
    return [n for n in (normalize_string(v) for v in values) if n]


# -------------------------------------------------
# RESULT HELPERS
# -------------------------------------------------
class BaseEvaluator:
    def pass_result(self, rule: RuleDefinition) -> RuleResult:
        return RuleResult(rule_id=rule.id, outcome=RuleOutcome.PASS, severity=rule.severity)

    def fail_result(self, rule: RuleDefinition, message: Optional[str] = None) -> RuleResult:
        return RuleResult(
            rule_id=rule.id,
            outcome=RuleOutcome.FAIL,
            message=message or rule.error_message,
            severity=rule.severity,
        )

    def not_applicable_result(self, rule: RuleDefinition) -> RuleResult:
        return RuleResult(rule_id=rule.id, outcome=RuleOutcome.NA, severity=rule.severity)

    def advisory_result(self, rule: RuleDefinition) -> RuleResult:
        return RuleResult(
            rule_id=rule.id,
            outcome=RuleOutcome.NA,
            message=rule.error_message,
            severity=rule.severity,
            advisory=True,
        )

    def verdict(self, rule: RuleDefinition, ok: Optional[bool]) -> RuleResult:
        if ok is None:
            return self.not_applicable_result(rule)
        return self.pass_result(rule) if ok else self.fail_result(rule)


# -------------------------------------------------
# RULE EVALUATOR
# -------------------------------------------------
class RuleEvaluator(BaseEvaluator):
    """
    Evaluates one rule against a resolved subject and operand.

    Dispatch is by ``rule.condition``. Anything the table does not know,
    including conditions that failed to parse from the catalog, is not
    applicable. Severity always comes from the rule.
    """

    def __init__(self):
        self.handlers: Dict[Condition, Callable[[RuleDefinition, Any, Any], Optional[bool]]] = {
            Condition.MATCHES: self._equals,
            Condition.EQUALS: self._equals,
            Condition.CONTAINS: self._contains,
            Condition.CONTAINS_ANY: self._contains_any,
            Condition.NOT_CONTAINS: self._not_contains,
            Condition.NOT_CONTAINS_ANY: self._not_contains_any,
            Condition.NOT_EQUALS: self._not_equals,
            Condition.NOT_IN_LIST: self._not_in_list,
            Condition.IN_LIST: self._in_list,
            Condition.VALID_VALUES: self._in_list,
            Condition.NOT_EMPTY: self._not_empty,
            Condition.GREATER_THAN: lambda r, s, o: self._compare_numbers(s, o, lambda a, b: a > b),
            Condition.GREATER_THAN_OR_EQUAL: lambda r, s, o: self._compare_numbers(s, o, lambda a, b: a >= b),
            Condition.LESS_THAN: lambda r, s, o: self._compare_numbers(s, o, lambda a, b: a < b),
            Condition.LESS_THAN_OR_EQUAL: lambda r, s, o: self._compare_numbers(s, o, lambda a, b: a <= b),
            Condition.BETWEEN: self._between,
            Condition.WITHIN_PERCENTAGE: self._within_percentage,
            Condition.PERCENTAGE_RANGE: self._percentage_range,
            Condition.BEFORE: lambda r, s, o: self._compare_dates(s, o, lambda a, b: a < b),
            Condition.AFTER: lambda r, s, o: self._compare_dates(s, o, lambda a, b: a > b),
            Condition.BEFORE_OR_EQUAL: lambda r, s, o: self._compare_dates(s, o, lambda a, b: a <= b),
            Condition.ON_OR_BEFORE: lambda r, s, o: self._compare_dates(s, o, lambda a, b: a <= b),
            Condition.ON_OR_AFTER: lambda r, s, o: self._compare_dates(s, o, lambda a, b: a >= b),
            Condition.WITHIN_DAYS: self._within_days,
            Condition.DAYS_BETWEEN: self._days_between,
            Condition.MATCHES_PATTERN: self._matches_pattern,
        }

    def evaluate(self, rule: RuleDefinition, subject: Any, operand: Any = None) -> RuleResult:
        if rule.condition in ADVISORY_CONDITIONS:
            return self.advisory_result(rule)
        handler = self.handlers.get(rule.condition)
        if handler is None:
            return self.not_applicable_result(rule)
        if operand is None and not rule.compare_field:
            operand = rule.value
        return self.verdict(rule, handler(rule, subject, operand))

    # ---------- TEXT ----------
    def _equals(self, rule, subject, operand):
        s, o = normalize_string(subject), normalize_string(operand)
        if not s or not o:
            return None
        return s == o

    def _not_equals(self, rule, subject, operand):
        s, o = normalize_string(subject), normalize_string(operand)
        if not s or not o:
            return None
        return s != o

    def _contains(self, rule, subject, operand):
        s, o = normalize_string(subject), normalize_string(operand)
        if not s or not o:
            return None
        return o in s

    def _not_contains(self, rule, subject, operand):
        s, o = normalize_string(subject), normalize_string(operand)
        if not s or not o:
            return None
        return o not in s

    def _contains_any(self, rule, subject, operand):
        s = normalize_string(subject)
        needles = _needles(_as_list(rule.valid_values) or _as_list(operand))
        if not s or not needles:
            return None
        return any(n in s for n in needles)

    def _not_contains_any(self, rule, subject, operand):
        s = normalize_string(subject)
        needles = _needles(_as_list(rule.invalid_values) or _as_list(operand))
        if not s or not needles:
            return None
        return not any(n in s for n in needles)

    def _in_list(self, rule, subject, operand):
        s = normalize_string(subject)
        allowed = set(_needles(_as_list(rule.valid_values) or _as_list(operand)))
        if not s or not allowed:
            return None
        return s in allowed

    def _not_in_list(self, rule, subject, operand):
        s = normalize_string(subject)
        denied = set(_needles(_as_list(rule.invalid_values) or _as_list(operand)))
        if not s or not denied:
            return None
        return s not in denied

    def _not_empty(self, rule, subject, operand):
        return not is_blank(subject)

    def _matches_pattern(self, rule, subject, operand):
        if is_blank(subject) or not rule.pattern:
            return None
        try:
            return re.search(rule.pattern, stringify(subject)) is not None
        except re.error:
            return None

    # ---------- NUMBERS ----------
    def _compare_numbers(self, subject, operand, op):
        s, o = parse_number(subject), parse_number(operand)
        if s is None or o is None:
            return None
        return op(s, o)

    def _between(self, rule, subject, operand):
        s = parse_number(subject)
        lo, hi = parse_number(rule.min_value), parse_number(rule.max_value)
        if s is None or (lo is None and hi is None):
            return None
        if lo is not None and s < lo:
            return False
        if hi is not None and s > hi:
            return False
        return True

    def _within_percentage(self, rule, subject, operand):
        s, o = parse_number(subject), parse_number(operand)
        limit = parse_number(rule.value if rule.value is not None else rule.tolerance)
        if s is None or o is None or o == 0 or limit is None:
            return None
        return abs(s - o) / abs(o) * 100 <= limit

    def _percentage_range(self, rule, subject, operand):
        s, o = parse_number(subject), parse_number(operand)
        lo, hi = parse_number(rule.min_percent), parse_number(rule.max_percent)
        if s is None or o is None or o == 0 or (lo is None and hi is None):
            return None
        pct = s / o * 100
        if lo is not None and pct < lo:
            return False
        if hi is not None and pct > hi:
            return False
        return True

    # ---------- DATES ----------
    def _compare_dates(self, subject, operand, op):
        s, o = parse_date(subject), parse_date(operand)
        if s is None or o is None:
            return None
        return op(s, o)

    def _within_days(self, rule, subject, operand):
        s, o = parse_date(subject), parse_date(operand)
        limit = parse_number(rule.value)
        if s is None or o is None or limit is None:
            return None
        return abs((s - o).days) <= limit

    def _days_between(self, rule, subject, operand):
        s, o = parse_date(subject), parse_date(operand)
        lo = parse_number(rule.min_days if rule.min_days is not None else rule.min_value)
        hi = parse_number(rule.max_days if rule.max_days is not None else rule.max_value)
        if s is None or o is None or (lo is None and hi is None):
            return None
        delta = (o - s).days
        if lo is not None and delta < lo:
            return False
        if hi is not None and delta > hi:
            return False
        return True


_evaluator = RuleEvaluator()


def evaluate(rule: RuleDefinition, subject: Any, operand: Any = None) -> RuleResult:
    return _evaluator.evaluate(rule, subject, operand)
