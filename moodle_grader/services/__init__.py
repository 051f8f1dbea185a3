"""
Moodle Grader Services
======================

Services:
- header_classifier: gradebook column roles
- name_normalizer: Moodle folder names -> candidate student names
- student_matcher: candidate -> gradebook student cascade
- gradebook_service: gradebook reading and roster building
- submission_service: submission ZIP grouping and text extraction
- moodle_export: gradebook CSV export
"""

# Services are imported directly when needed
# Example: from moodle_grader.services.student_matcher import find_best_student_match

__all__ = [
    'header_classifier',
    'name_normalizer',
    'student_matcher',
    'gradebook_service',
    'submission_service',
    'moodle_export',
]
