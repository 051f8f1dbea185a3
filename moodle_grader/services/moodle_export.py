"""
Moodle gradebook export.

Writes the gradebook back in its original column order. Only the grade and
feedback cells change; every other cell is written back by position from
StudentRecord.original_values.
"""
import csv
import io
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence, Union

from moodle_grader.models import NOT_FOUND, GradebookError, StudentRecord

logger = logging.getLogger(__name__)

Column = Union[str, int, None]

# Graded feedback sometimes comes back prefixed with the score ("/10 Good work")
_SCORE_PREFIX_RE = re.compile(r'^/\d+\s*')


def feedback_column_for(grade_column: str) -> str:
    return f"{grade_column} (feedback)"


def clean_feedback(feedback: str) -> str:
    return _SCORE_PREFIX_RE.sub('', feedback or '')


def _column_index(headers: Sequence[str], column: Column) -> Optional[int]:
    if column is None or column == NOT_FOUND:
        return None
    if isinstance(column, int):
        return column if 0 <= column < len(headers) else None
    return headers.index(column) if column in headers else None


def _row_values(student: StudentRecord, headers: Sequence[str]) -> List[str]:
    values = list(student.original_values) or [student.original_row.get(h, '') for h in headers]
    return values[:len(headers)] + [''] * (len(headers) - len(values))


def generate_moodle_csv(students: Sequence[StudentRecord], headers: Sequence[str],
                        grade_column: Column, feedback_column: Column = None) -> str:
    """
    Render the gradebook as CSV text.

    Columns are given as a header name or a column index; pass indices when
    the header row has duplicates. Cells are written by position, so every
    column other than grade and feedback comes out exactly as it was read.

    When there is a grade column but no feedback column, feedback goes to a new
    "<grade column> (feedback)" column appended to the header row.
    """
    headers = list(headers)
    grade_index = _column_index(headers, grade_column)
    feedback_index = _column_index(headers, feedback_column)

    out_headers = list(headers)
    if grade_index is not None and feedback_index is None:
        appended = feedback_column_for(headers[grade_index])
        if appended in headers:
            feedback_index = headers.index(appended)
        elif any(s.feedback for s in students):
            out_headers.append(appended)
            feedback_index = len(headers)

    out = io.StringIO()
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(out_headers)
    for student in students:
        values = _row_values(student, headers) + [''] * (len(out_headers) - len(headers))
        if grade_index is not None and student.grade != '':
            values[grade_index] = str(student.grade)
        if feedback_index is not None and student.feedback:
            values[feedback_index] = clean_feedback(student.feedback)
        writer.writerow(values)
    return out.getvalue()


def export_gradebook(gradebook, path: str) -> str:
    """Write `gradebook` (a gradebook_service.Gradebook) to `path`."""
    if not gradebook.grade_column:
        raise GradebookError("Cannot export: no grade column in this gradebook")

    content = generate_moodle_csv(gradebook.students, gradebook.headers,
                                  gradebook.role_map.assignment_grade, gradebook.role_map.feedback)
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)

    graded = sum(1 for s in gradebook.students if s.grade != '')
    logger.info("Exported %d students (%d graded) to %s", len(gradebook.students), graded, out_path)
    return str(out_path)
