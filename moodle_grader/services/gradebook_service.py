"""
Gradebook Service
=================
Reads a Moodle gradebook (CSV or Excel), classifies its columns and builds
the roster of StudentRecords the matcher works against.

Every original cell is kept in StudentRecord.original_row so the export can
write the file back with only the grade and feedback cells changed.
"""
import csv
import io
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from moodle_grader.models import ColumnRoleMap, GradebookError, StudentRecord
from moodle_grader.services.header_classifier import classify_headers

logger = logging.getLogger(__name__)

NAME_COLUMNS_WARNING = "First/last name columns not detected - select them manually."
GRADE_COLUMN_WARNING = "No grade column detected - grades will need a column before export."


@dataclass
class Gradebook:
    headers: List[str]
    role_map: ColumnRoleMap
    students: List[StudentRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def grade_column(self) -> Optional[str]:
        return self.role_map.header_for('assignment_grade', self.headers)

    @property
    def feedback_column(self) -> Optional[str]:
        return self.role_map.header_for('feedback', self.headers)

    def find_student(self, identifier: str) -> Optional[StudentRecord]:
        for student in self.students:
            if student.identifier == identifier:
                return student
        return None

    def to_dict(self):
        return {
            "headers": self.headers,
            "columns": self.role_map.to_dict(),
            "students": [s.to_dict() for s in self.students],
            "warnings": self.warnings,
            "gradeColumn": self.grade_column,
            "feedbackColumn": self.feedback_column,
        }


# =============================================================================
# READING
# =============================================================================

def _cell(value) -> str:
    return '' if value is None else str(value)


def parse_gradebook_text(text: str) -> Tuple[List[str], List[List[str]]]:
    """
    Split CSV text into (headers, rows); blank lines are skipped.

    Header strings are kept exactly as written so the export can reproduce
    them; the classifier does its own trimming.
    """
    reader = csv.reader(io.StringIO(text.lstrip('\ufeff')))
    headers = next(reader, [])
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    return headers, rows


def read_gradebook(path: str) -> Tuple[List[str], List[List[str]]]:
    """
    Load a gradebook file.

    CSV is decoded as UTF-8 (a BOM from Excel is tolerated); .xlsx is read
    from its active sheet with openpyxl.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise GradebookError(f"Gradebook file not found: {path}")

    extension = file_path.suffix.lower()
    if extension == '.csv':
        with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
            return parse_gradebook_text(f.read())

    if extension == '.xlsx':
        import openpyxl

        wb = openpyxl.load_workbook(file_path, read_only=True, data_only=True)
        try:
            sheet = wb.active
            rows = [[_cell(v) for v in row] for row in sheet.iter_rows(values_only=True)]
        finally:
            wb.close()
        if not rows:
            return [], []
        return rows[0], [r for r in rows[1:] if any(c.strip() for c in r)]

    raise GradebookError(f"Unsupported gradebook type: {extension or file_path.name} (use CSV or XLSX)")


# =============================================================================
# RECORD BUILDER
# =============================================================================

def _value(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ''
    return _cell(row[index]).strip()


def build_student_records(headers: Sequence[str], rows: Sequence[Sequence[str]],
                          role_map: ColumnRoleMap) -> List[StudentRecord]:
    """Zip each data row with the role map into a StudentRecord."""
    students = []
    for index, row in enumerate(rows):
        original_values = [_cell(row[col]) if col < len(row) else '' for col in range(len(headers))]
        original_row: Dict[str, str] = {}
        for header, value in zip(headers, original_values):
            original_row.setdefault(header, value)

        first_name = _value(row, role_map.first_name)
        last_name = _value(row, role_map.last_name)
        name_cell = _value(row, role_map.full_name)

        if first_name and last_name:
            full_name = f"{first_name} {last_name}"
        elif name_cell:
            full_name = name_cell
            parts = name_cell.split()
            if len(parts) >= 2:
                first_name = first_name or parts[0]
                last_name = last_name or parts[-1]
        else:
            full_name = ' '.join(p for p in (first_name, last_name) if p) or f"Student {index + 1}"

        grade = _value(row, role_map.assignment_grade)
        feedback = _value(row, role_map.feedback)
        if len(feedback) >= 2 and feedback.startswith('"') and feedback.endswith('"'):
            feedback = feedback[1:-1]

        students.append(StudentRecord(
            identifier=_value(row, role_map.student_id) or f"id_{index}",
            full_name=full_name,
            first_name=first_name,
            last_name=last_name,
            email=_value(row, role_map.email),
            original_row=original_row,
            original_values=original_values,
            grade=grade,
            feedback=feedback,
            edited=bool(grade),
        ))
    return students


def gradebook_warnings(role_map: ColumnRoleMap) -> List[str]:
    warnings = []
    has_names = role_map.is_resolved('first_name') and role_map.is_resolved('last_name')
    if not has_names and not role_map.is_resolved('full_name'):
        warnings.append(NAME_COLUMNS_WARNING)
    if not role_map.is_resolved('assignment_grade'):
        warnings.append(GRADE_COLUMN_WARNING)
    return warnings


def build_gradebook(headers: List[str], rows: List[List[str]],
                    first_name: Optional[int] = None, last_name: Optional[int] = None) -> Gradebook:
    """Classify, apply any manual first/last selection and build the roster."""
    role_map = classify_headers(headers)
    if first_name is not None or last_name is not None:
        role_map = role_map.with_override(first_name=first_name, last_name=last_name)

    students = build_student_records(headers, rows, role_map)
    warnings = gradebook_warnings(role_map)
    logger.info("Loaded %d students from gradebook (%d columns)", len(students), len(headers))
    for warning in warnings:
        logger.warning(warning)
    return Gradebook(headers=headers, role_map=role_map, students=students, warnings=warnings)


def load_gradebook(path: str, first_name: Optional[int] = None,
                   last_name: Optional[int] = None) -> Gradebook:
    headers, rows = read_gradebook(path)
    return build_gradebook(headers, rows, first_name=first_name, last_name=last_name)


def apply_column_override(gradebook: Gradebook, first_name: Optional[int] = None,
                          last_name: Optional[int] = None) -> Gradebook:
    """
    Re-pick the first/last name columns of a loaded gradebook.

    Only the name fields are rebuilt; grades and feedback entered since the
    upload stay on their rows.
    """
    role_map = gradebook.role_map.with_override(first_name=first_name, last_name=last_name)
    rows = [s.original_values for s in gradebook.students]
    students = build_student_records(gradebook.headers, rows, role_map)
    for old, new in zip(gradebook.students, students):
        new.grade, new.feedback, new.edited = old.grade, old.feedback, old.edited

    logger.info("Name columns set to first=%d last=%d", role_map.first_name, role_map.last_name)
    return Gradebook(headers=gradebook.headers, role_map=role_map, students=students,
                     warnings=gradebook_warnings(role_map))
