from unittest.mock import MagicMock, patch

import pytest
from azure.core.exceptions import ServiceRequestError
from sqlalchemy import text

from app.db.postgres import get_db_session
from app.db.schema import new_id


@pytest.fixture
def interview(company) -> dict:
    interview_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO interviews (id, company_id, candidate_email, interview_type, access_token, questions)
                VALUES (:id, :cid, 'grace@example.com', 'behavioral', :token, '[]')
            """),
            {"id": interview_id, "cid": company["company_id"], "token": new_id()}
        )
    return {"id": interview_id}


@pytest.fixture
def storage():
    fake = MagicMock()
    fake.is_configured = True
    fake.upload_recording.return_value = {
        "blob_name": "interviews/x/grace_at_example.com_1.webm",
        "url": "https://acct.blob.core.windows.net/recordings/interviews/x/grace_at_example.com_1.webm",
        "size": 4,
    }
    with patch("app.api.routes.recording_routes.get_recording_storage", return_value=fake):
        yield fake


def upload(client, interview_id, email="grace@example.com", content_type="video/webm"):
    return client.post(
        f"/api/interviews/{interview_id}/recordings",
        data={"email": email},
        files={"recording": ("answer.webm", b"\x1a\x45\xdf\xa3", content_type)},
    )


async def test_upload_list_and_delete(client, company, interview, storage):
    response = await upload(client, interview["id"], email="Grace@Example.com")

    assert response.status_code == 201, response.text
    assert response.json()["file_size"] == 4
    storage.upload_recording.assert_called_once_with(interview["id"], "grace@example.com", b"\x1a\x45\xdf\xa3",
                                                     "video/webm")

    recordings = (await client.get(f"/api/interviews/{interview['id']}/recordings",
                                   headers=company["headers"])).json()
    assert len(recordings) == 1

    deleted = await client.delete(f"/api/recordings/{recordings[0]['id']}", headers=company["headers"])
    assert deleted.status_code == 200
    storage.delete_blob.assert_called_once_with("interviews/x/grace_at_example.com_1.webm")
    assert (await client.get(f"/api/interviews/{interview['id']}/recordings",
                             headers=company["headers"])).json() == []


async def test_upload_checks(client, interview, storage):
    assert (await upload(client, "missing")).status_code == 404
    assert (await upload(client, interview["id"], email="mallory@example.com")).status_code == 403
    assert (await upload(client, interview["id"], content_type="image/png")).status_code == 400
    storage.upload_recording.assert_not_called()


async def test_storage_not_configured(client, interview, storage):
    storage.is_configured = False
    response = await upload(client, interview["id"])
    assert response.status_code == 500


async def test_azure_failure(client, interview, storage):
    storage.upload_recording.side_effect = ServiceRequestError("connection reset")
    response = await upload(client, interview["id"])
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to upload recording"


async def test_recordings_are_company_scoped(client, interview, storage, register):
    await upload(client, interview["id"])
    other = await register(email="owner@globex.io", company_name="Globex")
    listed = await client.get(f"/api/interviews/{interview['id']}/recordings", headers=other["headers"])
    assert listed.json() == []
