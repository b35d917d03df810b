import os
import sys
import unittest
from datetime import date

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
from sample_data import loan, paystub
from xref_engine.aggregator import (
    MISSING_MESSAGE,
    advisory_notes,
    filter_items,
    search_items,
    sort_items,
    summarize,
    validate_document,
)
from xref_engine.catalog import load_field_catalog
from xref_engine.models import (
    DocumentIssue,
    ExtractedDocument,
    FieldDefinition,
    ItemStatus,
    Severity,
    ValidationItem,
)
from xref_engine.resolver import ReviewContext


def field(id, rules=(), mapping=None, required=True):
    return FieldDefinition.from_dict({
        "id": id,
        "fieldName": id.title(),
        "byteLOSMapping": mapping,
        "required": required,
        "rules": list(rules),
    })


def doc(data, issues=(), warnings=()):
    return ExtractedDocument(
        document_id="d1",
        document_type="paystub",
        data=data,
        issues=[DocumentIssue.from_dict(i) for i in issues],
        warnings=[DocumentIssue.from_dict(w) for w in warnings],
    )


SSN_FORMAT = {
    "id": "ssnFormat",
    "condition": "matches_pattern",
    "pattern": r"^\d{3}-\d{2}-\d{4}$",
    "errorMessage": "Invalid SSN format",
    "severity": "critical",
}


class TestClassification(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.loan = loan()
        cls.context = ReviewContext(application_date="2024-03-01", today=date(2024, 3, 10))

    def only(self, field_def, data, loan_record=None):
        items = validate_document([field_def], doc(data), loan_record if loan_record is not None else self.loan, context=self.context)
        self.assertEqual(len(items), 1)
        return items[0]

    def test_income_mismatch(self):
        f = field("grossPayCurrent", mapping="mismo.income", rules=[
            {"id": "reasonableAmount", "condition": "greater_than", "value": 0,
             "errorMessage": "Gross pay must be greater than zero", "severity": "critical"},
        ])
        item = self.only(f, {"grossPayCurrent": 5000})
        self.assertEqual(item.status, ItemStatus.FIELD_ERROR)
        self.assertIn("Does not match loan application (expected: 6000)", item.message)
        self.assertTrue(item.loan_comparison.has_loan_data)
        self.assertFalse(item.loan_comparison.matches)

    def test_loan_match_is_valid(self):
        f = field("grossPayCurrent", mapping="mismo.income")
        item = self.only(f, {"grossPayCurrent": "6,000"})
        self.assertEqual(item.status, ItemStatus.VALID)
        self.assertTrue(item.loan_comparison.matches)

    def test_missing_required_field(self):
        f = field("netPay", rules=[{"id": "positive", "condition": "greater_than", "value": 0,
                                     "errorMessage": "Net pay must be positive"}])
        item = self.only(f, {"netPay": ""})
        self.assertEqual(item.status, ItemStatus.FIELD_ERROR)
        self.assertEqual(item.message, MISSING_MESSAGE)

    def test_missing_field_without_rules_is_valid(self):
        item = self.only(field("bankName"), {})
        self.assertEqual(item.status, ItemStatus.VALID)

    def test_formatting_failure_suppressed(self):
        item = self.only(field("ssnNumber", rules=[SSN_FORMAT]), {"ssnNumber": "123456789"})
        self.assertEqual(item.status, ItemStatus.VALID)
        self.assertEqual(item.message, "")

    def test_loan_mismatch_wins_over_formatting_failure(self):
        f = field("ssnNumber", mapping="borrower.ssn", rules=[SSN_FORMAT])
        item = self.only(f, {"ssnNumber": "999999999"})
        self.assertEqual(item.status, ItemStatus.FIELD_ERROR)
        self.assertTrue(item.message.startswith("Does not match loan application"))
        self.assertNotIn("Invalid", item.message)

    def test_business_rule_failure(self):
        f = field("endingBalance", rules=[
            SSN_FORMAT,
            {"id": "sufficientFunds", "condition": "greater_than", "value": 0,
             "errorMessage": "Account is overdrawn at end of period", "severity": "critical"},
        ])
        item = self.only(f, {"endingBalance": "-25.00"})
        self.assertEqual(item.status, ItemStatus.FIELD_ERROR)
        self.assertEqual(item.message, "Account is overdrawn at end of period")
        self.assertEqual(item.rule, "sufficientFunds")
        self.assertEqual(item.severity, Severity.CRITICAL)

    def test_extra_extracted_key_is_not_an_operand(self):
        f = field("employer", rules=[{"id": "employerMatch", "condition": "matches",
                                      "compareField": "employerOfRecord",
                                      "errorMessage": "Employer does not match", "severity": "critical"}])
        item = self.only(f, {"employer": "Globex", "employerOfRecord": "Globex"},
                         loan_record={"employerOfRecord": "Acme Corp"})
        self.assertEqual(item.status, ItemStatus.FIELD_ERROR)
        self.assertEqual(item.message, "Employer does not match")

    def test_no_loan_data_skips_comparison(self):
        f = field("jobTitle", mapping="borrower.employment.current.title")
        item = self.only(f, {"jobTitle": "Engineer"})
        self.assertEqual(item.status, ItemStatus.VALID)
        self.assertFalse(item.loan_comparison.has_loan_data)

    def test_unparsable_data_degrades_to_valid(self):
        f = field("regularHours", rules=[{"id": "reasonableHours", "condition": "between",
                                           "minValue": 0, "maxValue": 200, "errorMessage": "Hours out of range"}])
        self.assertEqual(self.only(f, {"regularHours": "eighty"}).status, ItemStatus.VALID)


class TestValidateDocument(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.loan = loan()
        cls.fields = load_field_catalog("paystub")
        cls.context = ReviewContext(application_date="2024-03-01", today=date(2024, 3, 10))

    def test_clean_paystub(self):
        d = ExtractedDocument.from_dict(paystub())
        items = validate_document(self.fields, d, self.loan, context=self.context)
        self.assertEqual(len(items), len(self.fields))
        self.assertEqual([i.status for i in items if i.status != ItemStatus.VALID], [])
        self.assertNotIn("unknownExtra", [i.field_id for i in items])

    def test_stale_paystub(self):
        raw = paystub()
        raw["extractedData"]["data"]["payPeriodStart"] = "2023-12-01"
        items = validate_document(self.fields, ExtractedDocument.from_dict(raw), self.loan, context=self.context)
        stale = [i for i in items if i.field_id == "payPeriodStart"][0]
        self.assertEqual(stale.status, ItemStatus.FIELD_ERROR)
        self.assertEqual(stale.rule, "documentRecency")
        self.assertEqual(stale.severity, Severity.CRITICAL)

    def test_voe_employment_status(self):
        d = ExtractedDocument.from_dict({
            "id": "doc-voe-1",
            "documentType": "voe",
            "data": {"voeEmploymentStatus": "Terminated", "voeJobTitle": "Engineer"},
        })
        items = {i.field_id: i for i in validate_document(load_field_catalog("voe"), d, self.loan, context=self.context)}
        self.assertEqual(items["voeEmploymentStatus"].status, ItemStatus.FIELD_ERROR)
        self.assertEqual(items["voeEmploymentStatus"].rule, "activeEmployment")
        # similarity checks are not evaluated
        self.assertEqual(items["voeJobTitle"].status, ItemStatus.VALID)

    def test_idempotent(self):
        d = ExtractedDocument.from_dict(paystub())
        first = validate_document(self.fields, d, self.loan, context=self.context)
        second = validate_document(self.fields, d, self.loan, context=self.context)
        self.assertEqual([i.to_dict() for i in first], [i.to_dict() for i in second])

    def test_prior_issues_merged(self):
        d = doc({}, issues=[{"rule": "federalTaxRequired", "message": "Federal tax missing"}],
                warnings=[{"rule": "nsfFeesPresent", "message": "NSF fees found"}])
        items = validate_document([], d, self.loan)
        self.assertEqual([(i.status, i.message) for i in items], [
            (ItemStatus.CRITICAL, "Federal tax missing"),
            (ItemStatus.WARNING, "NSF fees found"),
        ])
        self.assertEqual(items[0].title, "Critical Issue")
        self.assertEqual(items[1].title, "Warning")

    def test_explicit_prior_issues_override_document(self):
        d = doc({}, issues=[{"message": "from document"}])
        items = validate_document([], d, self.loan, prior_issues=[{"message": "explicit"}], prior_warnings=[])
        self.assertEqual([i.message for i in items], ["explicit"])

    def test_advisory_notes(self):
        d = ExtractedDocument.from_dict(paystub())
        notes = advisory_notes(self.fields, d, self.loan, self.context)
        rules = {n["rule"] for n in notes}
        self.assertIn("ytdCalculation", rules)
        self.assertIn("overtimeConsistency", rules)
        self.assertNotIn("reasonableAmount", rules)


class TestViews(unittest.TestCase):
    def items(self):
        return [
            ValidationItem(status=ItemStatus.WARNING, message="w", field_name="Bank Name"),
            ValidationItem(status=ItemStatus.CRITICAL, message="Federal tax missing", rule="federalTaxRequired"),
            ValidationItem(status=ItemStatus.VALID, field_id="netPay", field_name="Net Pay", value="4500"),
            ValidationItem(status=ItemStatus.FIELD_ERROR, message="Does not match", field_id="ssn", field_name="SSN"),
        ]

    def test_sort_by_severity(self):
        ordered = [i.status for i in sort_items(self.items())]
        self.assertEqual(ordered, [ItemStatus.CRITICAL, ItemStatus.FIELD_ERROR, ItemStatus.WARNING, ItemStatus.VALID])

    def test_sort_is_stable(self):
        a = ValidationItem(status=ItemStatus.WARNING, message="a")
        b = ValidationItem(status=ItemStatus.WARNING, message="b")
        self.assertEqual([i.message for i in sort_items([a, b])], ["a", "b"])

    def test_filters(self):
        items = self.items()
        self.assertEqual(len(filter_items(items, "all")), 4)
        self.assertEqual(len(filter_items(items, "issues-only")), 3)
        self.assertEqual([i.status for i in filter_items(items, "passed")], [ItemStatus.VALID])
        self.assertEqual([i.status for i in filter_items(items, "critical")], [ItemStatus.CRITICAL])
        self.assertEqual([i.status for i in filter_items(items, "warnings")], [ItemStatus.WARNING])
        self.assertEqual([i.status for i in filter_items(items, "field-errors")], [ItemStatus.FIELD_ERROR])
        with self.assertRaises(ValueError):
            filter_items(items, "bogus")

    def test_search(self):
        items = self.items()
        self.assertEqual(len(search_items(items, "")), 4)
        self.assertEqual([i.rule for i in search_items(items, "FEDERALTAX")], ["federalTaxRequired"])
        self.assertEqual([i.field_id for i in search_items(items, "4500")], ["netPay"])
        self.assertEqual([i.field_id for i in search_items(items, "ssn")], ["ssn"])
        self.assertEqual([i.status for i in search_items(items, "critical issue")], [ItemStatus.CRITICAL])

    def test_summarize(self):
        counts = summarize(self.items())
        self.assertEqual(counts, {"total": 4, "valid": 1, "warning": 1, "field-error": 1, "critical": 1, "issues": 3})


if __name__ == "__main__":
    unittest.main()
