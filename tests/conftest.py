"""
Shared test fixtures for Moodle Grader.
Gradebook CSVs live in tests/fixtures; submission ZIPs are built per test
in tmp_path so no binary fixtures are checked in.
"""
import io
import os
import zipfile

import pytest

from moodle_grader.models import StudentRecord

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture
def fixtures_dir():
    """Return the path to the fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def gradebook_csv():
    return os.path.join(FIXTURES_DIR, "moodle_gradebook.csv")


@pytest.fixture
def worksheet_csv():
    return os.path.join(FIXTURES_DIR, "moodle_worksheet.csv")


def make_student(full_name, first_name="", last_name="", identifier=None):
    return StudentRecord(
        identifier=identifier or full_name.lower().replace(" ", "_"),
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
    )


@pytest.fixture
def student():
    """Factory for StudentRecords: student("Jane Doe", "Jane", "Doe")."""
    return make_student


@pytest.fixture
def roster():
    return [
        make_student("Jane Doe", "Jane", "Doe"),
        make_student("John Smith", "John", "Smith"),
        make_student("Esi Entsir-Eghan", "Esi", "Entsir-Eghan"),
        make_student("Maria Garcia Lopez", "Maria", "Garcia Lopez"),
    ]


def make_docx_bytes(*paragraphs):
    from docx import Document

    doc = Document()
    for p in paragraphs:
        doc.add_paragraph(p)
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def make_pdf_bytes(text):
    import fitz

    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def docx_bytes():
    return make_docx_bytes


@pytest.fixture
def pdf_bytes():
    return make_pdf_bytes


@pytest.fixture
def make_zip(tmp_path):
    """Write {arcname: bytes|str} to a ZIP under tmp_path and return its path."""
    def _make(entries, name="submissions.zip"):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as z:
            for arcname, data in entries.items():
                if isinstance(data, str):
                    data = data.encode("utf-8")
                z.writestr(arcname, data)
        return str(path)
    return _make


@pytest.fixture
def client():
    """Flask test client with a fresh grading session."""
    from moodle_grader.app import create_app
    from moodle_grader.routes import reset_session

    reset_session()
    app = create_app({"TESTING": True})
    with app.test_client() as c:
        yield c
    reset_session()
