"""
MongoDB Service - CRUD operations for document collections.

Collections:
1. raw_resumes     - Resume text extracted from uploaded files
2. parsed_resumes  - AI-extracted structured resume data
3. ai_generations  - Generated interview question sets
"""

from datetime import datetime
from typing import Optional, List
from bson import ObjectId
from pymongo.collection import Collection

from app.db.mongodb import get_collection, COLLECTIONS


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


# ============================================================
# RAW RESUMES COLLECTION
# ============================================================

class RawResumeService:
    """
    Handles raw resume document storage.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["raw_resumes"])

    def insert(self, candidate_id: str, resume_text: str, filename: str = None) -> str:
        """
        Insert a raw resume document.

        Returns:
            MongoDB ObjectId as string
        """
        doc = {
            "candidate_id": candidate_id,
            "resume_text": resume_text,
            "filename": filename,
            "uploaded_at": datetime.utcnow(),
            "is_parsed": False
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def mark_as_parsed(self, mongo_id: str) -> bool:
        result = self.collection.update_one(
            {"_id": ObjectId(mongo_id)},
            {"$set": {"is_parsed": True, "parsed_at": datetime.utcnow()}}
        )
        return result.modified_count > 0


# ============================================================
# PARSED RESUMES COLLECTION
# ============================================================

class ParsedResumeService:
    """AI-extracted resume data, one document per parse."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["parsed_resumes"])

    def insert(self, candidate_id: str, raw_resume_id: str, parsed_data: dict) -> str:
        doc = {
            "candidate_id": candidate_id,
            "raw_resume_id": raw_resume_id,
            "parsed_data": parsed_data,
            "parsed_at": datetime.utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)


# ============================================================
# AI GENERATIONS COLLECTION
# ============================================================

class AIGenerationService:
    """Keeps every generated question set with the parameters that produced it."""

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["ai_generations"])

    def insert(self, company_id: Optional[str], generation_type: str, params: dict, questions: list) -> str:
        doc = {
            "company_id": company_id,
            "generation_type": generation_type,
            "params": params,
            "questions": questions,
            "question_count": len(questions),
            "created_at": datetime.utcnow(),
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def list_for_company(self, company_id: str, limit: int = 20) -> List[dict]:
        cursor = self.collection.find({"company_id": company_id}).sort("created_at", -1).limit(limit)
        return serialize_docs(list(cursor))
