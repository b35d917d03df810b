import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from xref_engine.disposition import (
    DEFAULT_SUGGESTED_ACTION,
    ActionKind,
    DispositionAction,
    DispositionError,
    DispositionStatus,
    Priority,
    apply_action,
    build_dispositions,
    filter_dispositions,
    queue_stats,
)
from xref_engine.models import ItemStatus, ValidationItem


def items():
    return [
        ValidationItem(status=ItemStatus.VALID, field_id="netPay"),
        ValidationItem(status=ItemStatus.CRITICAL, message="Two W-2s needed", rule="twoYearsRequired"),
        ValidationItem(status=ItemStatus.FIELD_ERROR, message="Does not match", field_id="ssn"),
        ValidationItem(status=ItemStatus.WARNING, message="NSF fees", rule="nsfFeesPresent"),
        ValidationItem(status=ItemStatus.WARNING, message="Old statement", rule="statementNotTooOld"),
    ]


class TestBuildDispositions(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.queue = build_dispositions(items(), "LN-1001", "doc-w2-1", "w2")

    def test_only_critical_and_warning(self):
        self.assertEqual([d.title for d in self.queue], ["Two W-2s needed", "NSF fees", "Old statement"])
        self.assertEqual([d.id for d in self.queue], ["disp-doc-w2-1-1", "disp-doc-w2-1-2", "disp-doc-w2-1-3"])

    def test_priority_and_actions(self):
        critical, nsf, old = self.queue
        self.assertEqual(critical.priority, Priority.HIGH)
        self.assertEqual(nsf.priority, Priority.MEDIUM)
        self.assertEqual(critical.suggested_action, "Request additional w2 to meet 2-year requirement")
        self.assertTrue(critical.requires_new_document)
        self.assertEqual(nsf.suggested_action, "Request letter of explanation for NSF/overdraft fees")
        self.assertFalse(old.requires_new_document)
        self.assertTrue(all(d.status == DispositionStatus.OPEN for d in self.queue))

    def test_unknown_rule_gets_default_action(self):
        q = build_dispositions([ValidationItem(status=ItemStatus.CRITICAL, message="x")], "L", "d", "paystub")
        self.assertEqual(q[0].suggested_action, DEFAULT_SUGGESTED_ACTION)

    def test_deterministic(self):
        again = build_dispositions(items(), "LN-1001", "doc-w2-1", "w2")
        self.assertEqual(again, self.queue)


class TestReducer(unittest.TestCase):
    def setUp(self):
        self.queue = build_dispositions(items(), "LN-1001", "doc-w2-1", "w2")

    def test_request_document(self):
        action = DispositionAction(ActionKind.REQUEST_DOCUMENT, "disp-doc-w2-1-1", actor="agent-7", notes="need 2022")
        after = apply_action(self.queue, action)
        d = after[0]
        self.assertEqual(d.status, DispositionStatus.IN_PROGRESS)
        self.assertEqual(d.requested_document, "w2")
        self.assertEqual(d.assigned_to, "agent-7")
        self.assertEqual(len(d.history), 1)
        self.assertEqual(d.history[0]["from"], "open")
        self.assertEqual(d.history[0]["to"], "in_progress")
        # the input queue is untouched
        self.assertEqual(self.queue[0].status, DispositionStatus.OPEN)
        self.assertEqual(self.queue[0].history, ())
        self.assertIs(after[1], self.queue[1])

    def test_lifecycle(self):
        q = apply_action(self.queue, DispositionAction("start", "disp-doc-w2-1-2"))
        q = apply_action(q, DispositionAction("create_condition", "disp-doc-w2-1-2"))
        q = apply_action(q, DispositionAction("mark_reviewed", "disp-doc-w2-1-2", notes="LOE received"))
        d = q[1]
        self.assertEqual(d.status, DispositionStatus.RESOLVED)
        self.assertTrue(d.condition_created)
        self.assertEqual(d.resolution, "LOE received")
        self.assertEqual([h["action"] for h in d.history], ["start", "create_condition", "mark_reviewed"])

    def test_override_and_dismiss(self):
        q = apply_action(self.queue, DispositionAction(ActionKind.OVERRIDE, "disp-doc-w2-1-1"))
        q = apply_action(q, DispositionAction(ActionKind.DISMISS, "disp-doc-w2-1-3"))
        self.assertEqual(q[0].status, DispositionStatus.RESOLVED)
        self.assertEqual(q[0].resolution, "overridden")
        self.assertEqual(q[2].status, DispositionStatus.DISMISSED)

    def test_errors(self):
        with self.assertRaises(DispositionError):
            apply_action(self.queue, DispositionAction("start", "disp-missing"))
        with self.assertRaises(DispositionError):
            apply_action(self.queue, DispositionAction("escalate", "disp-doc-w2-1-1"))
        closed = apply_action(self.queue, DispositionAction("dismiss", "disp-doc-w2-1-1"))
        with self.assertRaises(DispositionError):
            apply_action(closed, DispositionAction("start", "disp-doc-w2-1-1"))

    def test_views(self):
        q = apply_action(self.queue, DispositionAction("start", "disp-doc-w2-1-1"))
        q = apply_action(q, DispositionAction("dismiss", "disp-doc-w2-1-2"))
        self.assertEqual(len(filter_dispositions(q, "all")), 3)
        self.assertEqual([d.id for d in filter_dispositions(q, "open")], ["disp-doc-w2-1-1", "disp-doc-w2-1-3"])
        self.assertEqual([d.id for d in filter_dispositions(q, "resolved")], ["disp-doc-w2-1-2"])
        self.assertEqual(queue_stats(q), {"total": 3, "open": 2, "resolved": 1, "high": 1})
        with self.assertRaises(DispositionError):
            filter_dispositions(q, "later")

    def test_to_dict(self):
        out = self.queue[0].to_dict()
        self.assertEqual(out["priority"], "high")
        self.assertEqual(out["status"], "open")
        self.assertEqual(out["rule"], "twoYearsRequired")
        self.assertEqual(out["history"], [])


if __name__ == "__main__":
    unittest.main()
