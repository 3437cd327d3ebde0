import os

# Settings are cached on first import, so the environment is set up before any app import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["SMTP_HOST"] = ""
os.environ["AZURE_STORAGE_CONNECTION_STRING"] = ""
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["APP_BASE_URL"] = "http://testserver"

import base64
from datetime import datetime, timedelta
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import MagicMock, patch

import mongomock
import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from httpx import ASGITransport, AsyncClient
from lxml import etree
from signxml import XMLSigner
from sqlalchemy import text

from app.core.auth import create_user_token, hash_password
from app.db import mongodb
from app.db.postgres import engine, init_db, get_db_session
from app.db.schema import metadata, new_id
from app.main import app

init_db()


@pytest.fixture(autouse=True)
def clean_database():
    """Every test starts from empty tables."""
    yield
    with engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def mongo_db(monkeypatch):
    db = mongomock.MongoClient()["gradii_test"]
    monkeypatch.setattr(mongodb, "_db", db)
    return db


@pytest.fixture
def fake_ai():
    """One MagicMock standing in for the OpenAI wrapper everywhere it is looked up."""
    ai = MagicMock()
    targets = [
        "app.services.question_service.get_openai_client",
        "app.services.ai_parsing_service.get_openai_client",
        "app.services.talent_fit_service.get_openai_client",
        "app.api.routes.ai_routes.get_openai_client",
    ]
    patchers = [patch(target, return_value=ai) for target in targets]
    for p in patchers:
        p.start()
    yield ai
    for p in patchers:
        p.stop()


@pytest_asyncio.fixture(name="client")
async def client_fixture() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


async def register_company(client: AsyncClient, email: str = "owner@acme.io",
                           company_name: str = "Acme Corp", domain: str = None) -> dict:
    response = await client.post("/api/auth/register", json={
        "email": email,
        "password": "supersecret1",
        "first_name": "Ada",
        "last_name": "Owner",
        "company_name": company_name,
        "company_domain": domain,
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return {
        "headers": {"Authorization": f"Bearer {body['access_token']}"},
        "company_id": body["company_id"],
        "user_id": body["user_id"],
        "email": email,
    }


@pytest_asyncio.fixture
async def company(client) -> dict:
    return await register_company(client)


@pytest.fixture
def register(client):
    """Register an extra company: `await register(email=..., company_name=...)`."""
    async def _register(**kwargs) -> dict:
        return await register_company(client, **kwargs)
    return _register


@pytest.fixture
def admin() -> dict:
    user_id = new_id()
    with get_db_session() as db:
        db.execute(
            text("""
                INSERT INTO users (id, email, password_hash, first_name, last_name, role)
                VALUES (:id, 'root@gradii.ai', :pw, 'Root', 'Admin', 'super-admin')
            """),
            {"id": user_id, "pw": hash_password("rootpassword")}
        )
    token = create_user_token(user_id, "root@gradii.ai", "super-admin", None)
    return {"headers": {"Authorization": f"Bearer {token}"}, "user_id": user_id}


@pytest_asyncio.fixture
async def campaign(client, company) -> dict:
    response = await client.post("/api/campaigns", headers=company["headers"], json={
        "campaign_name": "Backend Hiring Q3",
        "job_title": "Backend Engineer",
        "job_description": "Build Python APIs",
        "required_skills": ["python", "sql"],
    })
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def candidate(client, company, campaign) -> dict:
    response = await client.post("/api/candidates", headers=company["headers"], json={
        "campaign_id": campaign["id"],
        "first_name": "Grace",
        "last_name": "Hopper",
        "email": "grace@example.com",
    })
    assert response.status_code == 201, response.text
    return response.json()


def make_identity_provider(common_name: str) -> SimpleNamespace:
    """A throwaway IdP: a self-signed certificate plus a function that signs SAMLResponse XML."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.utcnow()
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode()

    def sign(xml: str) -> str:
        signed = XMLSigner().sign(etree.fromstring(xml.encode()), key=key_pem, cert=cert_pem)
        return base64.b64encode(etree.tostring(signed)).decode()

    return SimpleNamespace(certificate=cert_pem, sign=sign)


@pytest.fixture(scope="session")
def idp() -> SimpleNamespace:
    return make_identity_provider("idp.acme.io")


@pytest.fixture(scope="session")
def rogue_idp() -> SimpleNamespace:
    return make_identity_provider("idp.attacker.io")
