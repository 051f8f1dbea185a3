#!/usr/bin/env python3
"""
Moodle Grader - gradebook column detection and submission matching
====================================================================
Run: python3 -m moodle_grader.app
Then open: http://localhost:3000
"""
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from moodle_grader.config import DEBUG, HOST, LOG_LEVEL, PORT, config
from moodle_grader.routes import register_routes

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    """Build the Flask app with all blueprints registered."""
    app = Flask(__name__)
    CORS(app)
    if test_config:
        app.config.update(test_config)

    register_routes(app)

    @app.route('/api/health')
    def health():
        return jsonify({"status": "ok"})

    @app.route('/api/settings', methods=['GET', 'POST'])
    def settings():
        if request.method == 'POST':
            data = request.get_json(silent=True) or {}
            if not isinstance(data, dict):
                return jsonify({"error": "settings must be a JSON object"}), 400
            try:
                config.update(data)
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
        return jsonify(config.to_dict())

    return app


def main():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    logger.info("Moodle Grader listening on http://%s:%d", HOST, PORT)
    app.run(host=HOST, port=PORT, debug=DEBUG)


if __name__ == '__main__':
    main()
