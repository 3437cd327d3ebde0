"""
MongoDB Connection Utility

MongoDB stores:
- Raw resume documents (PDF/DOCX as extracted text)
- AI-parsed resume outputs (structured JSON)
- AI question-generation outputs (prompt parameters + generated questions)

The relational database stays the source of truth; Mongo keeps the
schema-flexible documents the AI produces.
"""
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings
from app.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=5000)
    return _client


def get_mongo_db() -> Database:
    """Get the document database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Collections we use:
    - raw_resumes: Original resume text
    - parsed_resumes: AI-extracted resume data
    - ai_generations: Generated interview questions
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning(f"MongoDB connection failed: {e}")
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "raw_resumes": "raw_resumes",
    "parsed_resumes": "parsed_resumes",
    "ai_generations": "ai_generations",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance.
    Call this once during app startup.
    """
    db = get_mongo_db()

    db[COLLECTIONS["raw_resumes"]].create_index("candidate_id")
    db[COLLECTIONS["parsed_resumes"]].create_index("candidate_id")

    db[COLLECTIONS["ai_generations"]].create_index([
        ("company_id", 1),
        ("created_at", -1)
    ])

    logger.info("MongoDB indexes created successfully")
