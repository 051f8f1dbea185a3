"""
Moodle Grader Package
=====================

Matches Moodle submission folders to gradebook students and writes grades
back in Moodle's gradebook CSV format.

Structure:
- services/: column classification, name normalization, matching,
  gradebook and submission handling
- routes/: Flask API blueprints
- models.py: shared data types
- config.py: Configuration management
"""

from .config import config, Config

__version__ = "1.0.0"

__all__ = ['config', 'Config']
