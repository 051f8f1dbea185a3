"""
Submission Service
==================
Reads a Moodle "Download all submissions" ZIP, groups the files per student
folder, extracts the submission text and matches each folder to the roster.

Supported: .pdf (PyMuPDF), .docx (python-docx), .html/.htm and Moodle
onlinetext (BeautifulSoup), .txt. Images are flagged, not read.
"""
import io
import logging
import mimetypes
import os
import re
import zipfile
import zlib
from typing import Dict, List, Optional, Sequence

from moodle_grader.config import IMAGE_FILE_TYPES
from moodle_grader.models import (
    BatchReport, StudentRecord, SubmissionError, SubmissionFile, SubmissionFolder,
)
from moodle_grader.services.name_normalizer import normalize_submission_name, split_moodle_folder
from moodle_grader.services.student_matcher import MatcherSettings, find_best_student_match

logger = logging.getLogger(__name__)

NO_SUBMISSION = "[NO_SUBMISSION]"
EMPTY_SUBMISSION = "[EMPTY_SUBMISSION]"
IMAGE_SUBMISSION = "[IMAGE_SUBMISSION]"

PREFERRED_DOCUMENTS = ('.pdf', '.docx', '.doc')
HTML_TYPES = ('.html', '.htm')

_WHITESPACE_RE = re.compile(r'\s+')


def _ext(filename: str) -> str:
    return os.path.splitext(filename)[1].lower()


def _guess_mime(filename: str) -> str:
    if 'onlinetext' in filename:
        return 'text/html'
    mt, _ = mimetypes.guess_type(filename)
    return mt or "application/octet-stream"


def is_image_file(filename: str) -> bool:
    return _ext(filename) in IMAGE_FILE_TYPES


def is_html_file(filename: str) -> bool:
    return _ext(filename) in HTML_TYPES or 'onlinetext' in filename


# =============================================================================
# TEXT EXTRACTION
# =============================================================================

def _pdf_text(data: bytes) -> str:
    import fitz  # PyMuPDF

    doc = fitz.open(stream=data, filetype="pdf")
    try:
        return "\n\n".join(page.get_text() for page in doc)
    finally:
        doc.close()


def _docx_text(data: bytes) -> str:
    from docx import Document

    doc = Document(io.BytesIO(data))
    full_text = [p.text for p in doc.paragraphs if p.text.strip()]
    # Tables too, some templates put the whole answer in a table
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                if cell.text.strip():
                    full_text.append(cell.text)
    return '\n'.join(full_text)


def _html_text(data: bytes) -> str:
    from bs4 import BeautifulSoup

    soup = BeautifulSoup(data.decode('utf-8', errors='ignore'), 'html.parser')
    body = soup.body or soup
    return body.get_text(' ')


def error_marker(filename: str) -> str:
    return f"[ERROR: Failed to extract text from {filename}. This submission may require manual review.]"


def extract_text(filename: str, data: bytes) -> str:
    """
    Plain text of one submission file, whitespace collapsed.

    Unreadable or unsupported files come back as a bracketed marker so a
    single bad file never stops the rest of the batch.
    """
    ext = _ext(filename)
    try:
        if is_html_file(filename):
            text = _html_text(data)
        elif ext == '.pdf':
            text = _pdf_text(data)
        elif ext in ('.docx', '.doc'):
            text = _docx_text(data)
        elif ext == '.txt':
            text = data.decode('utf-8', errors='ignore')
        else:
            logger.warning("Unsupported file type: %s", filename)
            return (f'[UNSUPPORTED_FILE_TYPE: The file "{filename}" cannot be processed automatically. '
                    'Please review this submission manually.]')
    except Exception as e:
        logger.error("Error extracting text from %s: %s", filename, e)
        return error_marker(filename)

    return _WHITESPACE_RE.sub(' ', text).strip()


def choose_best_file(files: Sequence[SubmissionFile], texts: Dict[str, str]) -> Optional[SubmissionFile]:
    """
    Pick the file to grade from a student's folder.

    Uploaded documents (PDF/DOCX/DOC first) win over Moodle's onlinetext HTML
    when they have content; otherwise the first HTML file with content; else
    the first file.
    """
    if not files:
        return None
    if len(files) == 1:
        return files[0]

    documents = [f for f in files if not is_html_file(f.filename)]
    if documents:
        preferred = next((f for f in documents if _ext(f.filename) in PREFERRED_DOCUMENTS), documents[0])
        if is_image_file(preferred.filename) or texts.get(preferred.arcname, '').strip():
            return preferred

    for f in files:
        if is_html_file(f.filename) and texts.get(f.arcname, '').strip():
            return f

    return files[0]


# =============================================================================
# ZIP GROUPING
# =============================================================================

def _skip_entry(arcname: str) -> bool:
    base = os.path.basename(arcname)
    return '__MACOSX' in arcname or base.startswith('.') or '/.' in arcname


def _folder_for(arcname: str) -> str:
    parts = arcname.split('/')
    if len(parts) > 1:
        # "<root>/<student folder>/file" exports put one extra level on top
        if len(parts) > 2 and not split_moodle_folder(parts[0]) and split_moodle_folder(parts[1]):
            return parts[1]
        return parts[0]
    return split_moodle_folder(arcname)


def group_zip_by_student(zip_path: str) -> List[SubmissionFolder]:
    """Group the files of a submission ZIP by student folder, in ZIP order."""
    if not os.path.isfile(zip_path):
        raise SubmissionError(f"Submission archive not found: {zip_path}")
    try:
        z = zipfile.ZipFile(zip_path, "r")
    except zipfile.BadZipFile as e:
        raise SubmissionError(f"Not a valid ZIP archive: {zip_path}") from e

    folders: Dict[str, SubmissionFolder] = {}
    with z:
        for info in z.infolist():
            arc = info.filename.replace("\\", "/")
            if info.is_dir() or _skip_entry(arc):
                continue
            folder = _folder_for(arc)
            if not folder:
                logger.warning("Could not determine student for file: %s", arc)
                continue
            if folder not in folders:
                folders[folder] = SubmissionFolder(folder=folder, candidate=normalize_submission_name(folder))
            fname = os.path.basename(arc)
            folders[folder].files.append(SubmissionFile(
                arcname=arc,
                filename=fname,
                size=info.file_size,
                content_type=_guess_mime(fname),
            ))
    return list(folders.values())


def _read_member_text(z: zipfile.ZipFile, f: SubmissionFile) -> str:
    """Read one archive member and extract its text; a damaged member gives the error marker."""
    try:
        data = z.read(f.arcname)
    except (zipfile.BadZipFile, RuntimeError, zlib.error) as e:
        logger.error("Could not read %s from archive: %s", f.arcname, e)
        return error_marker(f.filename)
    return extract_text(f.filename, data)


def read_folder_texts(zip_path: str, folders: Sequence[SubmissionFolder]) -> None:
    """Extract text for every folder and choose its submission file (in place)."""
    with zipfile.ZipFile(zip_path, "r") as z:
        for folder in folders:
            texts = {}
            for f in folder.files:
                if is_image_file(f.filename):
                    continue
                texts[f.arcname] = _read_member_text(z, f)

            best = choose_best_file(folder.files, texts)
            if best is None:
                folder.text, folder.is_empty = NO_SUBMISSION, True
                continue

            folder.selected_file = best.filename
            if is_image_file(best.filename):
                folder.text, folder.is_image = IMAGE_SUBMISSION, True
                continue

            text = texts.get(best.arcname, '')
            if not text.strip():
                folder.text, folder.is_empty = EMPTY_SUBMISSION, True
            else:
                folder.text = text


def unmatched_warning(count: int) -> str:
    return f"{count} submissions could not be matched automatically - review manually."


def process_submission_zip(zip_path: str, roster: Sequence[StudentRecord],
                           settings: Optional[MatcherSettings] = None,
                           extract: bool = True) -> BatchReport:
    """Group, extract and match every student folder of a submission ZIP."""
    folders = group_zip_by_student(zip_path)
    if extract:
        read_folder_texts(zip_path, folders)

    settings = settings or MatcherSettings()
    report = BatchReport()
    for folder in folders:
        result = find_best_student_match(folder.candidate, roster, settings)
        entry = folder.to_dict()
        entry.update(result.to_dict())
        report.matches.append(entry)
        if not result.matched:
            report.unmatched.append(folder.folder)

    if not folders:
        report.warnings.append("No student folders found in the submission archive.")
    if report.unmatched:
        report.warnings.append(unmatched_warning(len(report.unmatched)))
    logger.info("Processed %d submission folders, %d unmatched", len(folders), len(report.unmatched))
    return report
