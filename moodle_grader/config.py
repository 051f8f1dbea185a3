"""
Configuration management for Moodle Grader.
"""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Server configuration
HOST = os.getenv("MOODLE_GRADER_HOST", "0.0.0.0")
PORT = int(os.getenv("MOODLE_GRADER_PORT", "3000"))
DEBUG = os.getenv("MOODLE_GRADER_DEBUG", "").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Gradebook and image file types
GRADEBOOK_FILE_TYPES = ['.csv', '.xlsx']
IMAGE_FILE_TYPES = ['.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff', '.tif']

# Matching configuration
# Strategy 6 accepts the best fuzzy score only when it is strictly above this.
FUZZY_MATCH_THRESHOLD = float(os.getenv("MOODLE_GRADER_FUZZY_THRESHOLD", "0.5"))
# Strategy 5 accepts the best token overlap only when it is strictly above this.
MIN_TOKEN_OVERLAP = int(os.getenv("MOODLE_GRADER_MIN_TOKEN_OVERLAP", "0"))

DEFAULT_UNIQUE_NAMES = ("esi", "jediah", "beatrice", "miaoen", "hayeon")


def _parse_name_list(value):
    return tuple(n.strip().lower() for n in value.split(",") if n.strip())


KNOWN_UNIQUE_NAMES = _parse_name_list(os.getenv("MOODLE_GRADER_UNIQUE_NAMES", "")) or DEFAULT_UNIQUE_NAMES


class Config:
    """Application configuration class."""

    def __init__(self):
        self.fuzzy_threshold = FUZZY_MATCH_THRESHOLD
        self.min_token_overlap = MIN_TOKEN_OVERLAP
        self.known_unique_names = list(KNOWN_UNIQUE_NAMES)

    def to_dict(self):
        return {
            "fuzzy_threshold": self.fuzzy_threshold,
            "min_token_overlap": self.min_token_overlap,
            "known_unique_names": list(self.known_unique_names),
        }

    def update(self, data: dict):
        """
        Apply settings from a dict; unknown keys are ignored.

        Values are checked before anything is stored, so a bad value raises
        ValueError and leaves the current settings untouched.
        """
        checked = {}
        for key, value in data.items():
            coerce = _COERCERS.get(key)
            if coerce is not None:
                checked[key] = coerce(value)
        for key, value in checked.items():
            setattr(self, key, value)


def _as_threshold(value):
    if isinstance(value, bool):
        raise ValueError("fuzzy_threshold must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"fuzzy_threshold must be a number, got {value!r}")
    if not 0.0 <= number <= 1.0:
        raise ValueError("fuzzy_threshold must be between 0 and 1")
    return number


def _as_overlap(value):
    if isinstance(value, bool) or isinstance(value, float) and not value.is_integer():
        raise ValueError(f"min_token_overlap must be a whole number, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"min_token_overlap must be a whole number, got {value!r}")
    if number < 0:
        raise ValueError("min_token_overlap cannot be negative")
    return number


def _as_name_list(value):
    if not isinstance(value, (list, tuple)) or not all(isinstance(n, str) for n in value):
        raise ValueError("known_unique_names must be a list of names")
    return [n.strip().lower() for n in value if n.strip()]


_COERCERS = {
    "fuzzy_threshold": _as_threshold,
    "min_token_overlap": _as_overlap,
    "known_unique_names": _as_name_list,
}


# Global config instance
config = Config()
