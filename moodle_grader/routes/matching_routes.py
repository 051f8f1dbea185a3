"""
Matching API routes for Moodle Grader.
Normalizes submission names and matches them against the uploaded gradebook.
"""
import logging
import os
import tempfile

from flask import Blueprint, request, jsonify
from werkzeug.utils import secure_filename

from moodle_grader.models import MoodleGraderError
from moodle_grader.routes.gradebook_routes import grading_session
from moodle_grader.services.name_normalizer import normalize_submission_name
from moodle_grader.services.student_matcher import MatcherSettings, find_best_student_match
from moodle_grader.services.submission_service import process_submission_zip, unmatched_warning

logger = logging.getLogger(__name__)

matching_bp = Blueprint('matching', __name__)


@matching_bp.route('/api/normalize-name', methods=['POST'])
def normalize_name():
    data = request.get_json(silent=True) or {}
    name = data.get('name')
    if name is None:
        return jsonify({"error": "No name provided"}), 400
    return jsonify(normalize_submission_name(str(name)).to_dict())


@matching_bp.route('/api/match-students', methods=['POST'])
def match_students():
    """Match a list of raw folder names against the loaded gradebook."""
    gradebook = grading_session["gradebook"]
    if gradebook is None:
        return jsonify({"error": "No gradebook uploaded"}), 404

    data = request.get_json(silent=True) or {}
    names = data.get('names')
    if not isinstance(names, list):
        return jsonify({"error": "names must be a list"}), 400

    settings = MatcherSettings()
    results = []
    unmatched = 0
    for raw in names:
        candidate = normalize_submission_name(str(raw))
        result = find_best_student_match(candidate, gradebook.students, settings)
        if not result.matched:
            unmatched += 1
        entry = result.to_dict()
        entry["candidate"] = candidate.to_dict()
        results.append(entry)

    warnings = [unmatched_warning(unmatched)] if unmatched else []
    return jsonify({"results": results, "warnings": warnings})


@matching_bp.route('/api/match-submissions', methods=['POST'])
def match_submissions_zip():
    """Upload a Moodle submissions ZIP; group, extract and match every folder."""
    gradebook = grading_session["gradebook"]
    if gradebook is None:
        return jsonify({"error": "No gradebook uploaded"}), 404
    if 'file' not in request.files:
        return jsonify({"error": "No file provided"}), 400

    file = request.files['file']
    filename = secure_filename(file.filename or '') or 'submissions.zip'
    if not filename.lower().endswith('.zip'):
        return jsonify({"error": "Expected a .zip Moodle submissions export"}), 400

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, filename)
        file.save(path)
        try:
            report = process_submission_zip(path, gradebook.students, MatcherSettings())
        except MoodleGraderError as e:
            return jsonify({"error": str(e)}), 400

    return jsonify(report.to_dict())
