"""
Student Matcher
===============
Pairs a submission's candidate name with one gradebook record.

Strategies run from most to least precise and the first one that returns a
record wins; later strategies are never consulted. Only token overlap and
fuzzy similarity compare scores, and only among roster records.

    1. exact full name
    2. first + last name
    3. "Last, First" in the raw folder name
    4. unique first name (last-name containment breaks ties)
    5. name-token overlap
    6. fuzzy similarity (containment ratio / Levenshtein)
    7. initials
    8. known unique names (configurable allow-list)
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from moodle_grader.config import config
from moodle_grader.models import MatchResult, StudentRecord, SubmissionCandidateName
from moodle_grader.services.name_normalizer import TRAILING_ID_RE, strip_moodle_suffix

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r'[^a-z0-9]')
_INITIAL_RE = re.compile(r'^[a-z]\.?$')


@dataclass
class MatcherSettings:
    fuzzy_threshold: float = field(default_factory=lambda: config.fuzzy_threshold)
    min_token_overlap: int = field(default_factory=lambda: config.min_token_overlap)
    known_unique_names: Tuple[str, ...] = field(
        default_factory=lambda: tuple(n.lower() for n in config.known_unique_names)
    )


def _lower(value: Optional[str]) -> str:
    return (value or '').strip().lower()


def _first_token(name: str) -> str:
    parts = name.split()
    return parts[0] if parts else ''


# =============================================================================
# SCORING HELPERS
# =============================================================================

def normalize_for_fuzzy(name: str) -> str:
    """Lowercase and drop everything but a-z and 0-9."""
    return _NON_ALNUM_RE.sub('', (name or '').lower())


def similarity_score(a: str, b: str) -> float:
    """
    Similarity of two already-normalized strings in [0, 1].

    When one contains the other the score is shorter/longer length, otherwise
    1 - edit distance / longer length.
    """
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    if a in b or b in a:
        return min(len(a), len(b)) / max(len(a), len(b))
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


# =============================================================================
# STRATEGIES
# Each takes (candidate, roster, settings) and returns a record or None.
# =============================================================================

def exact_full_name(candidate: SubmissionCandidateName, roster: Sequence[StudentRecord],
                    settings: MatcherSettings) -> Optional[StudentRecord]:
    target = _lower(candidate.canonical_full_name)
    for student in roster:
        if _lower(student.full_name) == target:
            return student
    return None


def first_last_exact(candidate, roster, settings):
    first, last = _lower(candidate.first_name), _lower(candidate.last_name)
    if not first or not last:
        return None
    for student in roster:
        if _lower(student.first_name) == first and _lower(student.last_name) == last:
            return student
    return None


def last_first_literal(candidate, roster, settings):
    """Split the raw folder name on its comma, without any reordering."""
    raw = TRAILING_ID_RE.sub('', strip_moodle_suffix(candidate.raw_source or ''))
    if ',' not in raw:
        return None
    parts = [p.strip().lower() for p in raw.split(',')]
    if len(parts) != 2 or not all(parts):
        return None
    last, first = parts
    for student in roster:
        if _lower(student.first_name) == first and _lower(student.last_name) == last:
            return student
    return None


def unique_first_name(candidate, roster, settings):
    first = _lower(candidate.first_name) or _first_token(_lower(candidate.canonical_full_name))
    if not first:
        return None

    matches = [
        s for s in roster
        if (_lower(s.first_name) or _first_token(_lower(s.full_name))) == first
    ]
    if len(matches) == 1:
        return matches[0]

    # Several students share the first name: look for one whose last name
    # appears in the candidate's full name.
    full_name = _lower(candidate.canonical_full_name)
    for student in matches:
        last = _lower(student.last_name)
        if last and last in full_name:
            return student
    return None


def token_overlap(candidate, roster, settings):
    tokens = set(_lower(candidate.canonical_full_name).split())
    best, best_count = None, settings.min_token_overlap
    for student in roster:
        count = len(tokens & set(_lower(student.full_name).split()))
        if count > best_count:
            best, best_count = student, count
    return best


def fuzzy_similarity(candidate, roster, settings):
    target = normalize_for_fuzzy(candidate.canonical_full_name)
    best, best_score = None, 0.0
    for student in roster:
        score = similarity_score(target, normalize_for_fuzzy(student.full_name))
        if score > best_score:
            best, best_score = student, score

    if best is not None and best_score > settings.fuzzy_threshold:
        logger.debug("Fuzzy score %.2f for %r vs %r", best_score, candidate.canonical_full_name, best.full_name)
        return best
    if best is not None:
        logger.debug("Best fuzzy score %.2f (%r) is below threshold %.2f",
                     best_score, best.full_name, settings.fuzzy_threshold)
    return None


def initials(candidate, roster, settings):
    letters = {t[0] for t in _lower(candidate.canonical_full_name).split() if _INITIAL_RE.match(t)}
    if not letters:
        return None
    matches = [
        s for s in roster
        if any(token[0] in letters for token in _lower(s.full_name).split())
    ]
    return matches[0] if len(matches) == 1 else None


def known_unique_name(candidate, roster, settings):
    full_name = _lower(candidate.canonical_full_name)
    for name in settings.known_unique_names:
        if name not in full_name:
            continue
        matches = [s for s in roster if name in _lower(s.full_name)]
        if len(matches) == 1:
            return matches[0]
        logger.debug("Unique name %r found in %d roster entries", name, len(matches))
    return None


Strategy = Callable[[SubmissionCandidateName, Sequence[StudentRecord], MatcherSettings], Optional[StudentRecord]]

STRATEGIES: List[Tuple[str, Strategy]] = [
    ('exact', exact_full_name),
    ('first+last', first_last_exact),
    ('last,first', last_first_literal),
    ('unique-first-name', unique_first_name),
    ('token-overlap', token_overlap),
    ('fuzzy', fuzzy_similarity),
    ('initials', initials),
    ('known-unique-name', known_unique_name),
]


# =============================================================================
# ENTRY POINTS
# =============================================================================

def find_best_student_match(candidate: SubmissionCandidateName, roster: Sequence[StudentRecord],
                            settings: Optional[MatcherSettings] = None) -> MatchResult:
    """
    Run the strategy cascade and return the first hit.

    An empty candidate name or an empty roster is a plain no-match.
    """
    if not candidate.canonical_full_name or not roster:
        logger.debug("Nothing to match for %r (roster size %d)", candidate.raw_source, len(roster or []))
        return MatchResult.no_match()

    settings = settings or MatcherSettings()
    for name, strategy in STRATEGIES:
        student = strategy(candidate, roster, settings)
        if student is not None:
            logger.info("Matched %r -> %r [%s]", candidate.canonical_full_name, student.full_name, name)
            return MatchResult(student=student, strategy=name)

    logger.info("No match for %r", candidate.canonical_full_name)
    return MatchResult.no_match()


def match_submissions(candidates: Iterable[SubmissionCandidateName], roster: Sequence[StudentRecord],
                      settings: Optional[MatcherSettings] = None) -> List[MatchResult]:
    settings = settings or MatcherSettings()
    return [find_best_student_match(c, roster, settings) for c in candidates]
