import logging
import os
import re
import time
import zipfile

import docx
import fitz  # PyMuPDF
try:
    import pdfplumber
except Exception:
    pdfplumber = None
from pptx import Presentation
from striprtf.striprtf import rtf_to_text
from werkzeug.utils import secure_filename

from . import settings
from .errors import ERR, ContentMismatch, ExtractionFailed, FileTooLarge, UnsupportedFileType
from .models import DocumentMetadata, StoredDocument

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".txt", ".pdf", ".docx", ".pptx", ".rtf"}
PREVIEW_CHARS = 200

# --- content sniffing & zip safety ---

def _looks_pdf(head: bytes) -> bool:
    return head.startswith(b"%PDF-")

def _looks_rtf(head: bytes) -> bool:
    return head.startswith(b"{\\rtf")

def _looks_zip(head: bytes) -> bool:
    return head.startswith(b"PK\x03\x04") or head.startswith(b"PK\x05\x06") or head.startswith(b"PK\x07\x08")

def _office_zip_kind(fp: str) -> str | None:
    """Return 'docx' if it looks like a Word docx, 'pptx' if a PowerPoint; else None."""
    try:
        with zipfile.ZipFile(fp) as z:
            names = set(z.namelist())
            if "[Content_Types].xml" not in names:
                return None
            if any(n.startswith("word/") for n in names):
                return "docx"
            if any(n.startswith("ppt/") for n in names):
                return "pptx"
    except zipfile.BadZipFile:
        return None
    return None

def _zip_safety_ok(fp: str) -> bool:
    """Basic zip bomb guard: total uncompressed size and ratio check."""
    try:
        with zipfile.ZipFile(fp) as z:
            total_comp = 0
            total_uncomp = 0
            for i in z.infolist():
                total_comp += max(1, i.compress_size)
                total_uncomp += i.file_size
    except zipfile.BadZipFile:
        return False
    if total_uncomp > settings.ZIP_UNCOMPRESSED_LIMIT_MB * 1024 * 1024:
        return False
    ratio = float(total_uncomp) / float(total_comp or 1)
    return ratio <= settings.ZIP_COMPRESSION_RATIO_MAX


def allowed_file(filepath) -> bool:
    ext = os.path.splitext(filepath)[1].lower()
    return ext in ALLOWED_EXTENSIONS


def validate_file(filepath: str, name: str | None = None) -> str:
    """Check extension, size and magic bytes. Returns the lower-case extension."""
    name = name or os.path.basename(filepath)
    if not allowed_file(name):
        raise UnsupportedFileType(ERR["invalid_ext"].format(name=name))
    ext = os.path.splitext(name)[1].lower()
    try:
        size = os.path.getsize(filepath)
        with open(filepath, "rb") as f:
            head = f.read(8)
    except OSError as e:
        raise ExtractionFailed(ERR["file_missing"], f"{filepath}: {e.strerror}") from e
    if size > settings.MAX_FILE_MB * 1024 * 1024:
        raise FileTooLarge(ERR["file_too_big"], name)

    if ext == ".pdf" and not _looks_pdf(head):
        raise ContentMismatch(ERR["mime_mismatch"], name)
    if ext == ".rtf" and not _looks_rtf(head):
        raise ContentMismatch(ERR["mime_mismatch"], name)
    if ext in (".docx", ".pptx"):
        if not _looks_zip(head) or _office_zip_kind(filepath) != ext[1:]:
            raise ContentMismatch(ERR["mime_mismatch"], name)
        if not _zip_safety_ok(filepath):
            raise ContentMismatch(ERR["zip_bomb"], name)
    return ext


def _cap(s: str, limit: int) -> str:
    if not s:
        return ""
    return s[:limit]


def _read_text(filepath: str) -> str:
    # try utf-8, fallback utf-16
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        with open(filepath, "r", encoding="utf-16") as f:
            return f.read()


def _extract_pdf(filepath: str) -> str:
    # prefer PyMuPDF; cap pages
    try:
        with fitz.open(filepath) as doc:
            if doc.needs_pass:
                raise ExtractionFailed(ERR["pdf_encrypted"], os.path.basename(filepath))
            n = min(len(doc), settings.PDF_PAGE_LIMIT)
            return "\n".join(doc.load_page(i).get_text("text") or "" for i in range(n))
    except ExtractionFailed:
        raise
    except Exception as e:
        logger.warning("PyMuPDF failed on %s (%s); trying pdfplumber", filepath, e)
    if pdfplumber is None:
        return ""
    with pdfplumber.open(filepath) as pdf:
        n = min(len(pdf.pages), settings.PDF_PAGE_LIMIT)
        return "\n".join(pdf.pages[i].extract_text() or "" for i in range(n))


def _extract_docx(filepath: str) -> str:
    doc = docx.Document(filepath)
    paras = []
    for i, p in enumerate(doc.paragraphs):
        if i >= settings.DOCX_PARA_LIMIT:
            break
        paras.append(p.text)
    return "\n".join(paras)


def _extract_pptx(filepath: str) -> str:
    prs = Presentation(filepath)
    out = []
    for i, slide in enumerate(prs.slides):
        if i >= settings.PPTX_SLIDE_LIMIT:
            break
        for shape in slide.shapes:
            if hasattr(shape, "text"):
                out.append(shape.text)
    return "\n".join(out)


def _extract_rtf(filepath: str) -> str:
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            raw = f.read()
    except UnicodeDecodeError:
        with open(filepath, "r", encoding="latin-1", errors="ignore") as f:
            raw = f.read()
    return _cap(rtf_to_text(raw), settings.RTF_CHAR_LIMIT)


_EXTRACTORS = {
    ".txt": _read_text,
    ".pdf": _extract_pdf,
    ".docx": _extract_docx,
    ".pptx": _extract_pptx,
    ".rtf": _extract_rtf,
}


def extract_text(filepath: str, ext: str | None = None) -> str:
    """Plain text of a supported document, capped. Raises ExtractionFailed when nothing usable comes out."""
    ext = (ext or os.path.splitext(filepath)[1]).lower()
    fn = _EXTRACTORS.get(ext)
    if fn is None:
        raise UnsupportedFileType(ERR["invalid_ext"].format(name=os.path.basename(filepath)))
    try:
        text = fn(filepath)
    except ExtractionFailed:
        raise
    except Exception as e:
        logger.exception("Extraction failed for %s", filepath)
        raise ExtractionFailed(ERR["extraction_failed"], str(e)) from e
    text = _cap(text, settings.TXT_CHAR_LIMIT)
    if not text.strip():
        raise ExtractionFailed(ERR["extraction_failed"], os.path.basename(filepath))
    logger.info("Extracted %d characters from %s", len(text), os.path.basename(filepath))
    return text


_SEPARATORS = ("\n\n", "\n", " ", "")


def _split_recursive(text: str, chunk_size: int, seps: tuple) -> list[str]:
    if len(text) <= chunk_size:
        return [text]
    sep, rest = seps[0], seps[1:]
    if sep == "":
        return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]
    pieces = []
    for part in text.split(sep):
        if len(part) > chunk_size:
            pieces.extend(_split_recursive(part, chunk_size, rest))
        elif part:
            pieces.append(part)
    return pieces


def split_text(text: str, chunk_size: int = settings.CHUNK_SIZE, overlap: int = settings.CHUNK_OVERLAP) -> list[str]:
    """
    Split text into chunks of at most ``chunk_size`` characters, preferring
    paragraph, then line, then word boundaries. Consecutive chunks share up to
    ``overlap`` trailing characters of whole pieces.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    overlap = max(0, min(overlap, chunk_size - 1))
    text = (text or "").strip()
    if not text:
        return []

    pieces = _split_recursive(text, chunk_size, _SEPARATORS)
    chunks, cur, cur_len = [], [], 0
    for piece in pieces:
        add = len(piece) + (1 if cur else 0)
        if cur and cur_len + add > chunk_size:
            chunks.append(" ".join(cur))
            # carry whole trailing pieces into the next chunk while they fit the overlap
            while cur and (cur_len > overlap or cur_len + len(piece) + 1 > chunk_size):
                cur_len -= len(cur[0]) + (1 if len(cur) > 1 else 0)
                cur.pop(0)
            add = len(piece) + (1 if cur else 0)
        cur.append(piece)
        cur_len += add
    if cur:
        chunks.append(" ".join(cur))
    return chunks


def make_document_id(file_name: str, now_ms: int | None = None) -> str:
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    safe = secure_filename(file_name) or "document"
    return f"doc_{ts}_{re.sub(r'[^A-Za-z0-9._-]', '_', safe)}"


def ingest_document(store, filepath: str, file_name: str | None = None) -> dict:
    """Validate, extract, chunk and persist one document; returns a summary for the caller."""
    name = file_name or os.path.basename(filepath)
    ext = validate_file(filepath, name)
    text = extract_text(filepath, ext)
    chunks = split_text(text)
    logger.info("Created %d chunks for %s", len(chunks), name)

    doc_id = make_document_id(name)
    record = StoredDocument(
        id=doc_id,
        original_content=text,
        metadata=DocumentMetadata(file_name=name, chunk_count=len(chunks)),
    )
    store.put_document(record)
    return {
        "message": "File processed successfully",
        "documentId": doc_id,
        "fileName": name,
        "chunksCreated": len(chunks),
        "contentPreview": text[:PREVIEW_CHARS] + "...",
        "success": True,
    }
