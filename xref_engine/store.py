#store.py
import copy
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import MongoClient

from .models import ExtractedDocument
from .settings import (
    DOCUMENT_COLLECTION,
    LOAN_COLLECTION,
    MONGO_DB,
    MONGO_URI,
    REVIEW_COLLECTION,
    get_logger,
)

logger = get_logger("xref_engine.store")


class LoanNotFoundError(LookupError):
    """No loan record for the requested loan id."""


# -------------------------------------------------
# JSON UTILS
# -------------------------------------------------
def clean_mongo(obj):
    """
    Recursively convert MongoDB-native types into JSON-serializable primitives.
    ObjectId -> str, datetime/date -> isoformat
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: clean_mongo(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [clean_mongo(x) for x in obj]
    return str(obj)


# -------------------------------------------------
# MONGO STORE
# -------------------------------------------------
class LoanStore:
    def __init__(self, uri: str = MONGO_URI, db_name: str = MONGO_DB, client: Optional[MongoClient] = None):
        self.client = client or MongoClient(uri)
        self.db = self.client[db_name]

    def get_loan(self, loan_id: str) -> Dict[str, Any]:
        loan_id = str(loan_id).strip()
        logger.info(f"Searching loan records for loanId={loan_id}")
        doc = self.db[LOAN_COLLECTION].find_one({"$or": [{"loanId": loan_id}, {"loanNumber": loan_id}]})
        if not doc:
            logger.error(f"Loan ID {loan_id} NOT FOUND")
            raise LoanNotFoundError(f"Loan not found: {loan_id}")
        logger.info("Loan record found")
        return clean_mongo(doc)

    def get_documents(self, loan_id: str) -> List[ExtractedDocument]:
        loan_id = str(loan_id).strip()
        docs = [clean_mongo(d) for d in self.db[DOCUMENT_COLLECTION].find({"loanId": loan_id})]
        logger.info(f"Found {len(docs)} extracted documents for loanId={loan_id}")
        return [ExtractedDocument.from_dict(d, position=n) for n, d in enumerate(docs)]

    def save_review(self, payload: Dict[str, Any]) -> str:
        """Replace the stored review of the payload's loan."""
        loan_id = payload.get("loanId")
        if loan_id:
            self.db[REVIEW_COLLECTION].delete_many({"loanId": loan_id})
        to_insert = copy.deepcopy(payload)
        to_insert["createdAt"] = datetime.now(timezone.utc)
        result = self.db[REVIEW_COLLECTION].insert_one(to_insert)
        logger.info(f"Saved review with ID: {result.inserted_id}")
        return str(result.inserted_id)

    def close(self):
        self.client.close()
