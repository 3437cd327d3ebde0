"""
Question Bank Routes

POST /questions/collections - Create a collection
GET /questions/collections - List collections with question counts
DELETE /questions/collections/{id} - Delete a collection (questions are kept)
POST /questions - Add a question
GET /questions - List questions (collection, type, difficulty filters)
GET /questions/{id} - Question details
DELETE /questions/{id} - Deactivate a question
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query
from sqlalchemy import text

from app.core.auth import get_current_company
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.question_service import validate_mcq_questions, QuestionGenerationError
from app.utils.serialization import loads_json, dumps_json
from app.schemas.schemas import (
    QuestionCollectionCreate, QuestionCollectionResponse, QuestionCreate, QuestionResponse, MessageResponse
)

router = APIRouter(prefix="/questions", tags=["Question Bank"])


def _to_response(row: dict) -> QuestionResponse:
    row["options"] = loads_json(row.get("options"))
    row["tags"] = loads_json(row.get("tags"), [])
    return QuestionResponse(**row)


def _get_owned_question(question_id: str, company_id: str) -> dict:
    row = fetch_one(
        "SELECT * FROM questions WHERE id = :id AND company_id = :cid AND is_active = TRUE",
        {"id": question_id, "cid": company_id}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Question not found")
    return row


# ============================================================
# COLLECTIONS
# ============================================================

@router.post("/collections", response_model=QuestionCollectionResponse, status_code=201)
async def create_collection(data: QuestionCollectionCreate, company: dict = Depends(get_current_company)):
    collection_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO question_collections (id, company_id, name, description, interview_type, created_by)
                VALUES (:id, :company_id, :name, :description, :interview_type, :created_by)
            """),
            {
                "id": collection_id, "company_id": company["company_id"], "name": data.name,
                "description": data.description,
                "interview_type": data.interview_type.value if data.interview_type else None,
                "created_by": company["user_id"],
            }
        )
    row = fetch_one("SELECT * FROM question_collections WHERE id = :id", {"id": collection_id})
    return QuestionCollectionResponse(**row, question_count=0)


@router.get("/collections", response_model=List[QuestionCollectionResponse])
async def list_collections(company: dict = Depends(get_current_company)):
    rows = execute_raw_sql(
        """
        SELECT qc.*,
               (SELECT COUNT(*) FROM questions q WHERE q.collection_id = qc.id AND q.is_active = TRUE) AS question_count
        FROM question_collections qc
        WHERE qc.company_id = :cid
        ORDER BY qc.created_at DESC
        """,
        {"cid": company["company_id"]}
    )
    return [QuestionCollectionResponse(**r) for r in rows]


@router.delete("/collections/{collection_id}", response_model=MessageResponse)
async def delete_collection(collection_id: str, company: dict = Depends(get_current_company)):
    with get_db_session() as db:
        db.execute(
            text("UPDATE questions SET collection_id = NULL WHERE collection_id = :id AND company_id = :cid"),
            {"id": collection_id, "cid": company["company_id"]}
        )
        result = db.execute(
            text("DELETE FROM question_collections WHERE id = :id AND company_id = :cid"),
            {"id": collection_id, "cid": company["company_id"]}
        )
        if result.rowcount == 0:
            raise HTTPException(status_code=404, detail="Collection not found")
    return MessageResponse(message="Collection deleted")


# ============================================================
# QUESTIONS
# ============================================================

@router.post("", response_model=QuestionResponse, status_code=201)
async def create_question(data: QuestionCreate, company: dict = Depends(get_current_company)):
    options = [o.model_dump() for o in data.options] if data.options else None
    correct_answer = data.correct_answer

    if data.question_type.value == "mcq":
        try:
            validate_mcq_questions([{"question": data.question, "options": options}])
        except QuestionGenerationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        correct_answer = correct_answer or next(o["id"] for o in options if o["isCorrect"])

    if data.collection_id and not fetch_one(
        "SELECT id FROM question_collections WHERE id = :id AND company_id = :cid",
        {"id": data.collection_id, "cid": company["company_id"]}
    ):
        raise HTTPException(status_code=404, detail="Collection not found")

    question_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO questions (id, company_id, collection_id, question_type, question, options, correct_answer,
                    explanation, expected_answer, category, difficulty_level, time_limit, tags)
                VALUES (:id, :company_id, :collection_id, :question_type, :question, :options, :correct_answer,
                    :explanation, :expected_answer, :category, :difficulty_level, :time_limit, :tags)
            """),
            {
                "id": question_id, "company_id": company["company_id"], "collection_id": data.collection_id,
                "question_type": data.question_type.value, "question": data.question,
                "options": dumps_json(options) if options else None, "correct_answer": correct_answer,
                "explanation": data.explanation, "expected_answer": data.expected_answer,
                "category": data.category, "difficulty_level": data.difficulty_level.value,
                "time_limit": data.time_limit, "tags": dumps_json(data.tags),
            }
        )
    return _to_response(_get_owned_question(question_id, company["company_id"]))


@router.get("", response_model=List[QuestionResponse])
async def list_questions(
    collection_id: Optional[str] = Query(None),
    question_type: Optional[str] = Query(None),
    difficulty: Optional[str] = Query(None),
    company: dict = Depends(get_current_company)
):
    sql = "SELECT * FROM questions WHERE company_id = :cid AND is_active = TRUE"
    params = {"cid": company["company_id"]}
    if collection_id:
        sql += " AND collection_id = :collection_id"
        params["collection_id"] = collection_id
    if question_type:
        sql += " AND question_type = :question_type"
        params["question_type"] = question_type
    if difficulty:
        sql += " AND difficulty_level = :difficulty"
        params["difficulty"] = difficulty

    rows = execute_raw_sql(sql + " ORDER BY created_at DESC", params)
    return [_to_response(r) for r in rows]


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_question(question_id: str, company: dict = Depends(get_current_company)):
    return _to_response(_get_owned_question(question_id, company["company_id"]))


@router.delete("/{question_id}", response_model=MessageResponse)
async def delete_question(question_id: str, company: dict = Depends(get_current_company)):
    _get_owned_question(question_id, company["company_id"])
    with get_db_session() as db:
        db.execute(
            text("UPDATE questions SET is_active = FALSE, updated_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"id": question_id}
        )
    return MessageResponse(message="Question deleted")
