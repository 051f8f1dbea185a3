"""
Name Normalizer
===============
Turns Moodle submission folder/file names into candidate student names.

Moodle packages each submission as
    "<Full Name>_<participant id>_assignsubmission_<plugin>"
and online text as "<Full Name>_<id>_onlinetext_". Course-level exports can
also carry a semester prefix ("25SP ") or a course code ("SOC-395-A ").
"""
import re

from moodle_grader.models import SubmissionCandidateName

# Checked in this order; the first one present wins.
MOODLE_SUFFIXES = ('_assignsubmission_', '_onlinetext_', '_file_')

SEMESTER_PREFIX_RE = re.compile(r'^(?:\d+[A-Za-z]{2}\s+)+')
PARENTHESIS_TAIL_RE = re.compile(r'\s*\(.*\).*$')
COURSE_CODE_RE = re.compile(r'^[A-Z]{3}-\d{3}-[A-Z]\s*')
COURSE_ASSIGNMENT_TAIL_RE = re.compile(r'-\d+.*$')
TRAILING_ID_RE = re.compile(r'_(\d+)$')
SEPARATORS_RE = re.compile(r'[_\-]+')
WHITESPACE_RE = re.compile(r'\s+')


def strip_moodle_suffix(name: str) -> str:
    """Cut everything from the first known Moodle packaging marker onward."""
    for marker in MOODLE_SUFFIXES:
        pos = name.find(marker)
        if pos != -1:
            return name[:pos]
    return name


def split_moodle_folder(path_component: str) -> str:
    """
    Student key for a ZIP path component: the part before the packaging
    marker, with the participant id dropped ("Jane Doe_123_assignsubmission_file"
    -> "Jane Doe"). Returns "" when the component carries no marker.
    """
    for marker in MOODLE_SUFFIXES[:2]:
        if marker in path_component:
            student = path_component.split(marker, 1)[0]
            return TRAILING_ID_RE.sub('', student)
    return ''


def _collapse(text: str) -> str:
    return WHITESPACE_RE.sub(' ', text).strip()


def _synthesize_id(full_name: str) -> str:
    return full_name.lower().replace(' ', '_')


def normalize_submission_name(raw: str) -> SubmissionCandidateName:
    """
    Clean a raw folder/file name into a SubmissionCandidateName.

    Pure and idempotent on the canonical name. An empty or blank input gives
    an all-empty candidate, which callers treat as unmatchable.

    Examples:
        "Jane Doe_123456_assignsubmission_file" -> "Jane Doe" (id "123456")
        "Doe, Jane_onlinetext_"                 -> "Jane Doe"
    """
    raw = raw or ''
    if not raw.strip():
        return SubmissionCandidateName(raw_source=raw, canonical_full_name='')

    name = strip_moodle_suffix(raw.strip())
    name = SEMESTER_PREFIX_RE.sub('', name)
    name = PARENTHESIS_TAIL_RE.sub('', name)

    if COURSE_CODE_RE.match(name):
        name = COURSE_CODE_RE.sub('', name)
        name = COURSE_ASSIGNMENT_TAIL_RE.sub('', name)

    synthetic_id = ''
    id_match = TRAILING_ID_RE.search(name)
    if id_match:
        synthetic_id = id_match.group(1)
        name = name[:id_match.start()]

    # "25SP_Jane_Doe" only exposes its prefix once separators become spaces
    name = SEMESTER_PREFIX_RE.sub('', _collapse(SEPARATORS_RE.sub(' ', name)))

    first_name = last_name = ''
    if ',' in name:
        last_part, first_part = name.split(',', 1)
        last_name = _collapse(last_part.replace(',', ' '))
        # "Doe, 25SP Jane" only exposes the prefix once the parts are split
        first_name = SEMESTER_PREFIX_RE.sub('', _collapse(first_part.replace(',', ' ')))
        name = _collapse(f"{first_name} {last_name}")
    elif ' ' in name:
        first_name, last_name = name.split(' ', 1)

    return SubmissionCandidateName(
        raw_source=raw,
        canonical_full_name=name,
        first_name=first_name,
        last_name=last_name,
        synthetic_id=synthetic_id or _synthesize_id(name),
    )
