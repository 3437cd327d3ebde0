"""
File Upload Utility - Validate uploads and extract resume text.

Resumes:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Plain Text (.txt)
- Max file size: 5MB (413 above it)

Recordings are validated by content type and size (500MB) before they
go to blob storage.
"""

import io
from typing import Tuple

from docx import Document
from fastapi import UploadFile, HTTPException
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from app.services.storage_service import ALLOWED_RECORDING_TYPES, MAX_RECORDING_SIZE


MAX_FILE_SIZE_MB = 5
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
ALLOWED_EXTENSIONS = {'.pdf', '.docx', '.txt'}
RECORDING_CHUNK_SIZE = 1024 * 1024


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if '.' not in filename:
        return ''
    return '.' + filename.rsplit('.', 1)[1].lower()


async def extract_text_from_file(file: UploadFile) -> Tuple[str, str]:
    """
    Extract text from an uploaded resume.

    Returns:
        Tuple of (extracted_text, filename)

    Raises:
        HTTPException on validation/extraction errors
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    ext = get_file_extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{ext}'. Allowed: PDF, DOCX, TXT"
        )

    content = await file.read()

    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {MAX_FILE_SIZE_MB}MB"
        )

    if ext == '.pdf':
        text = extract_from_pdf(content)
    elif ext == '.docx':
        text = extract_from_docx(content)
    else:  # .txt
        text = extract_from_txt(content)

    if not text.strip():
        raise HTTPException(
            status_code=400,
            detail="Could not extract text from file. File may be empty or corrupted."
        )

    return text, file.filename


def extract_from_pdf(content: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(content))
        return '\n'.join(page_text for page_text in (page.extract_text() for page in reader.pages) if page_text)
    except (PdfReadError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Error reading PDF: {str(e)}")


def extract_from_docx(content: bytes) -> str:
    """Paragraphs first, then table rows joined with ' | '."""
    try:
        doc = Document(io.BytesIO(content))
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Error reading DOCX: {str(e)}")

    text_parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if row_text:
                text_parts.append(' | '.join(row_text))
    return '\n'.join(text_parts)


def extract_from_txt(content: bytes) -> str:
    for encoding in ['utf-8', 'cp1252']:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode('latin-1')


async def read_recording(file: UploadFile) -> Tuple[bytes, str]:
    """Validate an interview recording upload; returns (content, mime_type)."""
    mime_type = (file.content_type or '').split(';')[0].strip().lower()
    if mime_type not in ALLOWED_RECORDING_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only video files (webm, mp4, avi) are allowed."
        )

    buffer = bytearray()
    while True:
        chunk = await file.read(RECORDING_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > MAX_RECORDING_SIZE:
            raise HTTPException(status_code=400, detail="File too large. Maximum size is 500MB.")
    content = bytes(buffer)
    if not content:
        raise HTTPException(status_code=400, detail="Recording file is empty")

    return content, mime_type
