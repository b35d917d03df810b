#settings.py
import os
import logging
from dotenv import load_dotenv

# -------------------------------------------------
# ENV
# -------------------------------------------------
load_dotenv()

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "ByteLOS_Review")
LOAN_COLLECTION = os.getenv("LOAN_COLLECTION", "Loan_Files")
DOCUMENT_COLLECTION = os.getenv("DOCUMENT_COLLECTION", "Extracted_Documents")
REVIEW_COLLECTION = os.getenv("REVIEW_COLLECTION", "Document_Review")

# where the loan record keeps the values behind the `applicationDate` sentinel
# and the version stamp used to memoize a review pass
APPLICATION_DATE_PATH = os.getenv("APPLICATION_DATE_PATH", "applicationDate")
LOAN_VERSION_PATH = os.getenv("LOAN_VERSION_PATH", "processingStatus.lastUpdated")

BASE_DIR = os.path.dirname(__file__)
CONFIG_DIR = os.getenv("CONFIG_DIR", os.path.join(BASE_DIR, "config"))
FIELDS_CONFIG_DIR = os.path.join(CONFIG_DIR, "fields")
TRACKED_FIELDS_CONFIG_PATH = os.path.join(CONFIG_DIR, "tracked_fields.yaml")
DOCUMENT_TYPES_CONFIG_PATH = os.path.join(CONFIG_DIR, "document_types.yaml")

# -------------------------------------------------
# LOGGER
# -------------------------------------------------
def get_logger(name: str = __name__) -> logging.Logger:
    lvl = os.getenv('LOG_LEVEL', 'INFO').upper()
    logger = logging.getLogger(name)
    if not logger.handlers:
        ch = logging.StreamHandler()
        fmt = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        ch.setFormatter(fmt)
        logger.addHandler(ch)
    logger.setLevel(getattr(logging, lvl, logging.INFO))
    return logger
