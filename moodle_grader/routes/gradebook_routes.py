"""
Gradebook API routes for Moodle Grader.
Handles column classification, gradebook upload, grade edits and export.
"""
import logging
import os
import tempfile

from flask import Blueprint, Response, request, jsonify
from werkzeug.utils import secure_filename

from moodle_grader.config import GRADEBOOK_FILE_TYPES
from moodle_grader.models import MoodleGraderError
from moodle_grader.services.gradebook_service import (
    apply_column_override, build_gradebook, load_gradebook, parse_gradebook_text,
)
from moodle_grader.services.header_classifier import classify_headers, describe_classification
from moodle_grader.services.moodle_export import generate_moodle_csv

logger = logging.getLogger(__name__)

gradebook_bp = Blueprint('gradebook', __name__)

# In-memory state for the current grading session (one gradebook per process)
grading_session = {"gradebook": None, "filename": None}


def reset_session():
    grading_session["gradebook"] = None
    grading_session["filename"] = None


def _optional_index(value):
    if value in (None, ''):
        return None
    return int(value)


@gradebook_bp.route('/api/classify-headers', methods=['POST'])
def classify():
    """Detect column roles for a header row."""
    data = request.get_json(silent=True) or {}
    headers = data.get('headers')
    if not isinstance(headers, list):
        return jsonify({"error": "headers must be a list"}), 400

    role_map = classify_headers([str(h) for h in headers])
    return jsonify({
        "columns": role_map.to_dict(),
        "details": describe_classification(role_map, headers),
    })


@gradebook_bp.route('/api/upload-gradebook', methods=['POST'])
def upload_gradebook():
    """Upload a gradebook CSV/XLSX and build the roster."""
    if 'file' not in request.files:
        return jsonify({"error": "No file provided"}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({"error": "No file selected"}), 400

    filename = secure_filename(file.filename) or 'gradebook.csv'
    extension = os.path.splitext(filename)[1].lower()
    if extension not in GRADEBOOK_FILE_TYPES:
        return jsonify({"error": "Invalid file type. Use CSV or XLSX"}), 400

    try:
        first_col = _optional_index(request.form.get('firstNameColumn'))
        last_col = _optional_index(request.form.get('lastNameColumn'))
        if extension == '.csv':
            text = file.read().decode('utf-8-sig', errors='replace')
            headers, rows = parse_gradebook_text(text)
            gradebook = build_gradebook(headers, rows, first_name=first_col, last_name=last_col)
        else:
            with tempfile.TemporaryDirectory() as tmp:
                path = os.path.join(tmp, filename)
                file.save(path)
                gradebook = load_gradebook(path, first_name=first_col, last_name=last_col)
    except (MoodleGraderError, ValueError) as e:
        return jsonify({"error": str(e)}), 400

    grading_session["gradebook"] = gradebook
    grading_session["filename"] = filename
    logger.info("Gradebook %s uploaded (%d students)", filename, len(gradebook.students))

    result = gradebook.to_dict()
    result["filename"] = filename
    return jsonify(result)


@gradebook_bp.route('/api/column-override', methods=['POST'])
def column_override():
    """Manually choose the first/last name columns of the loaded gradebook."""
    gradebook = grading_session["gradebook"]
    if gradebook is None:
        return jsonify({"error": "No gradebook uploaded"}), 404

    data = request.get_json(silent=True) or {}
    try:
        updated = apply_column_override(
            gradebook,
            first_name=_optional_index(data.get('firstNameColumn')),
            last_name=_optional_index(data.get('lastNameColumn')),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    grading_session["gradebook"] = updated
    return jsonify(updated.to_dict())


@gradebook_bp.route('/api/grades', methods=['POST'])
def update_grade():
    """Record a grade and feedback for one student."""
    gradebook = grading_session["gradebook"]
    if gradebook is None:
        return jsonify({"error": "No gradebook uploaded"}), 404

    data = request.get_json(silent=True) or {}
    identifier = data.get('identifier')
    if not identifier:
        return jsonify({"error": "No identifier provided"}), 400

    student = gradebook.find_student(str(identifier))
    if student is None:
        return jsonify({"error": f"Student not found: {identifier}"}), 404

    if 'grade' in data:
        student.grade = '' if data['grade'] is None else str(data['grade'])
    if 'feedback' in data:
        student.feedback = data['feedback'] or ''
    student.edited = True
    return jsonify({"status": "saved", "student": student.to_dict()})


@gradebook_bp.route('/api/export-gradebook')
def export_gradebook_csv():
    """Download the gradebook with updated grades as Moodle CSV."""
    gradebook = grading_session["gradebook"]
    if gradebook is None:
        return jsonify({"error": "No gradebook uploaded"}), 404
    if not gradebook.grade_column:
        return jsonify({"error": "No grade column detected in this gradebook"}), 400

    content = generate_moodle_csv(gradebook.students, gradebook.headers,
                                  gradebook.role_map.assignment_grade, gradebook.role_map.feedback)
    name = os.path.splitext(grading_session["filename"] or 'gradebook')[0]
    return Response(
        content,
        mimetype='text/csv',
        headers={"Content-Disposition": f"attachment; filename={name}_graded.csv"},
    )
