"""
Moodle Grader API Routes
========================

All API route blueprints for the Moodle Grader application.

Usage:
    from moodle_grader.routes import register_routes
    register_routes(app)
"""
from .gradebook_routes import gradebook_bp, grading_session, reset_session
from .matching_routes import matching_bp


def register_routes(app):
    """Register all route blueprints with the Flask app."""
    app.register_blueprint(gradebook_bp)
    app.register_blueprint(matching_bp)


__all__ = [
    'register_routes',
    'gradebook_bp',
    'matching_bp',
    'grading_session',
    'reset_session',
]
