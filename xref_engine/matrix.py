#matrix.py
# Rows are tracked fields, columns the selected documents. The complexity score
# only orders reviewer work.

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .catalog import DEFAULT_CATEGORY, TrackedFieldCatalog
from .models import CellStatus, ExtractedDocument, MatrixCell, TrackedField
from .normalize import is_blank, normalize_string
from .resolver import resolve_field_value, resolve_loan_path
from .settings import get_logger

logger = get_logger("xref_engine.matrix")

BASE_COMPLEXITY = {
    "Identity": 8,
    "Employment": 7,
    "Income": 9,
    "Property": 6,
    "Banking": 7,
    "Deductions": 5,
    DEFAULT_CATEGORY: 5,
}

MIN_SCORE = 1
MAX_SCORE = 10


def classify_cell(doc_value: Any, los_value: Any) -> CellStatus:
    if is_blank(doc_value):
        return CellStatus.NA
    if is_blank(los_value):
        return CellStatus.NO_LOS
    if normalize_string(doc_value) == normalize_string(los_value):
        return CellStatus.MATCH
    return CellStatus.MISMATCH


def complexity_score(base_score: float, mismatch_count: int) -> Optional[int]:
    """None when nothing mismatches, otherwise 1..10."""
    if mismatch_count < 1:
        return None
    raw = base_score + min(mismatch_count * 0.5, 2)
    # half-up, so 7.5 -> 8
    return min(max(int(math.floor(raw + 0.5)), MIN_SCORE), MAX_SCORE)


def complexity_label(score: Optional[int]) -> Optional[str]:
    if score is None:
        return None
    if score <= 3:
        return "Easy"
    if score <= 6:
        return "Medium"
    if score <= 8:
        return "Hard"
    return "Very Hard"


class ReconciliationMatrix:
    def __init__(
        self,
        fields: List[TrackedField],
        documents: List[ExtractedDocument],
        cells: Dict[Tuple[str, str], MatrixCell],
        base_complexity: Dict[str, float],
    ):
        self.fields = fields
        self.documents = documents
        self._cells = cells
        self._base = base_complexity

    def cell(self, field_name: str, document_id: str) -> Optional[MatrixCell]:
        return self._cells.get((field_name, document_id))

    def status(self, field_name: str, document_id: str) -> Optional[CellStatus]:
        c = self.cell(field_name, document_id)
        return c.status if c else None

    def mismatch_count(self, field_name: str) -> int:
        return sum(
            1 for d in self.documents
            if self.status(field_name, d.document_id) == CellStatus.MISMATCH
        )

    def complexity_score(self, field: TrackedField) -> Optional[int]:
        base = self._base.get(field.category, self._base.get(DEFAULT_CATEGORY, 5))
        return complexity_score(base, self.mismatch_count(field.name))

    def stats(self) -> Dict[str, int]:
        counts = {"totalCells": 0, "matches": 0, "mismatches": 0, "na": 0}
        for c in self._cells.values():
            counts["totalCells"] += 1
            if c.status == CellStatus.MATCH:
                counts["matches"] += 1
            elif c.status == CellStatus.MISMATCH:
                counts["mismatches"] += 1
            else:
                counts["na"] += 1
        return counts

    def fields_by_category(self) -> Dict[str, List[TrackedField]]:
        grouped: Dict[str, List[TrackedField]] = {}
        for f in self.fields:
            grouped.setdefault(f.category, []).append(f)
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        rows = []
        for f in self.fields:
            score = self.complexity_score(f)
            rows.append({
                "name": f.name,
                "label": f.label,
                "category": f.category,
                "cells": {
                    d.document_id: self._cells[(f.name, d.document_id)].to_dict()
                    for d in self.documents
                },
                "complexityScore": score,
                "complexityLabel": complexity_label(score),
            })
        return {
            "documents": [d.document_id for d in self.documents],
            "rows": rows,
            "stats": self.stats(),
        }


def build_matrix(
    tracked_fields: Any,
    documents: Sequence[ExtractedDocument],
    loan: Optional[Dict[str, Any]],
) -> ReconciliationMatrix:
    """
    Classify every (tracked field, document) pair.

    ``tracked_fields`` is a TrackedFieldCatalog or a plain list of
    TrackedField, in which case the built-in category bases apply.
    """
    if isinstance(tracked_fields, TrackedFieldCatalog):
        fields, base = tracked_fields.fields, tracked_fields.base_complexity
    else:
        fields, base = list(tracked_fields), dict(BASE_COMPLEXITY)

    documents = list(documents)
    cells = {}
    for f in fields:
        los_value = resolve_loan_path(loan, f.byte_los_path)
        for d in documents:
            doc_value = resolve_field_value(d, f.name)
            cells[(f.name, d.document_id)] = MatrixCell(
                status=classify_cell(doc_value, los_value),
                doc_value=doc_value,
                los_value=los_value,
            )

    matrix = ReconciliationMatrix(fields, documents, cells, base)
    logger.debug(f"Built matrix {len(fields)}x{len(documents)}: {matrix.stats()}")
    return matrix
