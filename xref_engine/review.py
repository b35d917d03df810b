#review.py
import json
import threading
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .aggregator import advisory_notes, sort_items, summarize, validate_document
from .catalog import (
    TrackedFieldCatalog,
    has_field_catalog,
    load_document_types,
    load_field_catalog,
    load_tracked_fields,
)
from .disposition import build_dispositions, queue_stats
from .matrix import build_matrix
from .models import ExtractedDocument, FieldDefinition, ValidationItem
from .resolver import PathResolver, ReviewContext
from .scorecard import generate_scorecard
from .settings import APPLICATION_DATE_PATH, LOAN_VERSION_PATH, get_logger
from .store import LoanStore

logger = get_logger("xref_engine.review")


def fingerprint(document: ExtractedDocument) -> str:
    """Stable text form of everything validation reads from a document."""
    return json.dumps(
        {
            "type": document.document_type,
            "data": document.data,
            "issues": [asdict(i) for i in document.issues],
            "warnings": [asdict(w) for w in document.warnings],
        },
        sort_keys=True,
        default=str,
    )


# -------------------------------------------------
# MAIN LOAN REVIEWER
# -------------------------------------------------
class LoanReviewer:
    """
    Runs one review pass over a loan: every document is validated, then
    the matrix, disposition queue and scorecard are built from the results.

    Document results are memoized per (documentId, document contents,
    loanVersion), so a second pass over an unchanged loan does no rule
    evaluation. Loans without a version stamp are never memoized, and the
    memo only holds the loan under review. ``cancel`` is only honoured
    between documents.
    """

    def __init__(
        self,
        store: Optional[LoanStore] = None,
        tracked_fields: Optional[TrackedFieldCatalog] = None,
        document_types: Optional[Dict[str, Any]] = None,
    ):
        self.store = store
        self.resolver = PathResolver()
        self.tracked_fields = tracked_fields or load_tracked_fields()
        self.document_types = document_types or load_document_types()
        self.cancel = threading.Event()
        self._catalogs: Dict[str, List[FieldDefinition]] = {}
        self._memo: Dict[str, Tuple[Tuple[str, Any], List[ValidationItem]]] = {}
        self._memo_loan: Any = None

    # ---------- CATALOG ----------
    def field_catalog(self, document_type: str) -> List[FieldDefinition]:
        if document_type not in self._catalogs:
            if has_field_catalog(document_type):
                self._catalogs[document_type] = load_field_catalog(document_type)
            else:
                logger.warning(f"No field catalog for document type {document_type!r}; only upstream issues are reported")
                self._catalogs[document_type] = []
        return self._catalogs[document_type]

    # ---------- VALIDATION ----------
    def context_for(self, loan: Dict[str, Any]) -> ReviewContext:
        return ReviewContext(application_date=self.resolver.walk(loan, APPLICATION_DATE_PATH))

    def validate(self, document: ExtractedDocument, loan: Dict[str, Any], context: Optional[ReviewContext] = None) -> List[ValidationItem]:
        version = self.resolver.walk(loan, LOAN_VERSION_PATH)
        loan_id = self.resolver.walk(loan, "loanId")
        if loan_id != self._memo_loan:
            self._memo.clear()
            self._memo_loan = loan_id

        stamp = (fingerprint(document), version)
        cached = self._memo.get(document.document_id)
        if version is not None and cached is not None and cached[0] == stamp:
            return list(cached[1])

        items = validate_document(
            self.field_catalog(document.document_type),
            document,
            loan,
            context=context or self.context_for(loan),
        )
        if version is not None:
            # one entry per document, replaced when contents or version move
            self._memo[document.document_id] = (stamp, items)
        return list(items)

    def validate_all(self, documents: Sequence[ExtractedDocument], loan: Dict[str, Any]) -> Dict[str, List[ValidationItem]]:
        ids = [d.document_id for d in documents]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Documents must have distinct ids, repeated: {duplicates}")

        context = self.context_for(loan)
        results = {}
        for doc in documents:
            if self.cancel.is_set():
                logger.info(f"Review cancelled after {len(results)} of {len(documents)} documents")
                break
            results[doc.document_id] = self.validate(doc, loan, context)
        return results

    # ---------- PAYLOAD ----------
    def format_results(
        self,
        loan: Dict[str, Any],
        documents: Sequence[ExtractedDocument],
        results: Dict[str, List[ValidationItem]],
    ) -> Dict[str, Any]:
        loan_id = self.resolver.walk(loan, "loanId")
        context = self.context_for(loan)
        reviewed = [d for d in documents if d.document_id in results]

        queue = ()
        doc_payloads = []
        for doc in reviewed:
            items = sort_items(results[doc.document_id])
            queue += build_dispositions(items, loan_id, doc.document_id, doc.document_type)
            doc_payloads.append({
                "documentId": doc.document_id,
                "documentType": doc.document_type,
                "fileName": doc.file_name,
                "summary": summarize(items),
                "items": [i.to_dict() for i in items],
                "advisoryNotes": advisory_notes(self.field_catalog(doc.document_type), doc, loan, context),
            })

        matrix = build_matrix(self.tracked_fields, reviewed, loan)
        scorecard = generate_scorecard(
            loan,
            reviewed,
            results,
            self.document_types["documentTypes"],
            self.document_types.get("scoringRules"),
            conditions=queue,
        )
        return {
            "loanId": loan_id,
            "borrower": self.resolver.resolve(loan, "borrower"),
            "applicationDate": context.application_date,
            "complete": len(reviewed) == len(documents),
            "documents": doc_payloads,
            "matrix": matrix.to_dict(),
            "dispositions": [d.to_dict() for d in queue],
            "dispositionStats": queue_stats(queue),
            "scorecard": scorecard,
        }

    def review_loan(self, loan_id: str, save: bool = True) -> Dict[str, Any]:
        if self.store is None:
            self.store = LoanStore()

        # loan lookup failures propagate to the caller
        loan = self.store.get_loan(loan_id)
        documents = self.store.get_documents(loan_id)
        logger.info(f"Reviewing loan {loan_id}: {len(documents)} documents")

        results = self.validate_all(documents, loan)
        payload = self.format_results(loan, documents, results)

        if save:
            self.store.save_review(payload)
        logger.info(f"Review of {loan_id} finished: score {payload['scorecard']['overallScore']}")
        return payload


# -------------------------------------------------
# CLI ENTRY
# -------------------------------------------------
def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description="Document field validation and cross-reference review")
    parser.add_argument("loan_id")
    parser.add_argument("--no-save", action="store_true", help="do not store the review payload")
    args = parser.parse_args(argv)

    reviewer = LoanReviewer()
    result = reviewer.review_loan(args.loan_id, save=not args.no_save)
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
