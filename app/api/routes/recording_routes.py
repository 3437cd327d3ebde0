"""
Recording Routes

POST /interviews/{id}/recordings - Candidate uploads a video recording
GET /interviews/{id}/recordings - Company lists an interview's recordings
DELETE /recordings/{id} - Company removes a recording
"""

from typing import List

from azure.core.exceptions import AzureError
from fastapi import APIRouter, HTTPException, Depends, File, Form, UploadFile
from sqlalchemy import text

from app.core.auth import get_current_company
from app.core.logging_config import get_logger
from app.db.postgres import get_db_session, execute_raw_sql, fetch_one
from app.db.schema import new_id
from app.services.storage_service import get_recording_storage
from app.utils.file_upload import read_recording
from app.schemas.schemas import RecordingResponse, MessageResponse

logger = get_logger(__name__)

router = APIRouter(tags=["Recordings"])


@router.post("/interviews/{interview_id}/recordings", response_model=RecordingResponse, status_code=201)
async def upload_recording(interview_id: str, recording: UploadFile = File(...), email: str = Form(...)):
    interview = fetch_one(
        "SELECT id, company_id, candidate_email FROM interviews WHERE id = :id", {"id": interview_id}
    )
    if not interview:
        raise HTTPException(status_code=404, detail="Interview not found")
    if email.strip().lower() != interview["candidate_email"].lower():
        raise HTTPException(status_code=403, detail="Email does not match the invited candidate")

    content, mime_type = await read_recording(recording)

    storage = get_recording_storage()
    if not storage.is_configured:
        raise HTTPException(status_code=500, detail="Recording storage is not configured")

    try:
        uploaded = storage.upload_recording(interview_id, interview["candidate_email"], content, mime_type)
    except AzureError as e:
        logger.error(f"Recording upload failed for interview {interview_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload recording")

    recording_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO interview_recordings (id, interview_id, company_id, candidate_email, blob_name,
                    azure_url, file_size, mime_type)
                VALUES (:id, :interview_id, :company_id, :email, :blob_name, :url, :size, :mime_type)
            """),
            {
                "id": recording_id, "interview_id": interview_id, "company_id": interview["company_id"],
                "email": interview["candidate_email"], "blob_name": uploaded["blob_name"],
                "url": uploaded["url"], "size": uploaded["size"], "mime_type": mime_type,
            }
        )

    return RecordingResponse(**fetch_one("SELECT * FROM interview_recordings WHERE id = :id", {"id": recording_id}))


@router.get("/interviews/{interview_id}/recordings", response_model=List[RecordingResponse])
async def list_recordings(interview_id: str, company: dict = Depends(get_current_company)):
    rows = execute_raw_sql(
        """
        SELECT * FROM interview_recordings
        WHERE interview_id = :id AND company_id = :cid AND is_deleted = FALSE
        ORDER BY created_at DESC
        """,
        {"id": interview_id, "cid": company["company_id"]}
    )
    return [RecordingResponse(**r) for r in rows]


@router.delete("/recordings/{recording_id}", response_model=MessageResponse)
async def delete_recording(recording_id: str, company: dict = Depends(get_current_company)):
    row = fetch_one(
        "SELECT * FROM interview_recordings WHERE id = :id AND company_id = :cid AND is_deleted = FALSE",
        {"id": recording_id, "cid": company["company_id"]}
    )
    if not row:
        raise HTTPException(status_code=404, detail="Recording not found")

    with get_db_session() as db:
        db.execute(
            text("UPDATE interview_recordings SET is_deleted = TRUE, deleted_at = CURRENT_TIMESTAMP WHERE id = :id"),
            {"id": recording_id}
        )

    get_recording_storage().delete_blob(row["blob_name"])
    return MessageResponse(message="Recording deleted")
