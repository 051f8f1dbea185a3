"""
Header Classifier
=================
Works out which gradebook column holds which piece of student data.

Moodle exports are not consistent: depending on the report, the site
language and whether the file went through Excel, the same column can be
called "First name", "Firstname", "Prénom" or "Vorname". Each role is
resolved with a layered cascade that stops at the first hit:

    1. exact (trimmed, case-insensitive) match against the role's variants
    2. header contains a variant
    3. a variant contains the header (abbreviated headers like "Last")
    4. first/last only: token heuristics

"First name"/"Last name" literals are checked before anything else since
they are what Moodle itself writes.
"""
import logging
import re
from typing import Iterable, List, Optional, Sequence, Set

from moodle_grader.models import ColumnRoleMap, NOT_FOUND

logger = logging.getLogger(__name__)


FIRST_NAME_VARIANTS = [
    'first name', 'firstname', 'given name', 'givenname', 'first', 'forename',
    'prénom', 'prenom', 'nombre', 'vorname', 'imię', 'imie', 'fname',
]

LAST_NAME_VARIANTS = [
    'last name', 'lastname', 'surname', 'family name', 'familyname', 'last',
    'nom', 'apellido', 'apellidos', 'nachname', 'nazwisko', 'lname',
]

FULL_NAME_VARIANTS = [
    'full name', 'fullname', 'name', 'student', 'participant', 'user',
    'nombre completo', 'nom complet', 'vollständiger name', 'imię i nazwisko',
]

GRADE_VARIANTS = [
    'grade', 'mark', 'score', 'points', 'assessment', 'assignment', 'nota',
    'notas', 'puntuación', 'calificación', 'bewertung', 'ocena',
]

FEEDBACK_VARIANTS = [
    'feedback', 'comment', 'comments', 'annotation', 'note', 'notes',
    'comentario', 'comentarios', 'commentaire', 'remarque', 'anmerkung',
    'kommentar', 'komentarz',
]

STUDENT_ID_TOKENS = {'id', 'identifier', 'username', 'idnumber', 'userid'}
STUDENT_ID_VARIANTS = ['identifier', 'id', 'id number', 'idnumber', 'student id', 'username', 'user id']

EMAIL_MARKERS = ('email', 'e-mail')

# Moodle adds timestamp columns such as "Last modified (submission)" and
# "Last downloaded from this course"; they are never name columns.
NON_NAME_TOKENS = {'modified', 'downloaded', 'access', 'accessed', 'date', 'time', 'login'}

FEEDBACK_TOKENS = {'feedback', 'comment', 'comments'}

_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)


def _norm(header) -> str:
    if header is None:
        return ''
    return str(header).strip().lower()


def _tokens(text: str) -> Set[str]:
    return set(_TOKEN_RE.findall(text))


class _RoleRule:
    """Variant list plus the tokens that disqualify a header for the role."""

    def __init__(self, role: str, variants: List[str], reject: Iterable[str] = ()):
        self.role = role
        self.variants = variants
        self.reject = set(reject)

    def accepts(self, header: str) -> bool:
        return bool(header) and not (_tokens(header) & self.reject)


RULES = {
    'first_name': _RoleRule('first_name', FIRST_NAME_VARIANTS, NON_NAME_TOKENS),
    'last_name': _RoleRule('last_name', LAST_NAME_VARIANTS, NON_NAME_TOKENS),
    'full_name': _RoleRule('full_name', FULL_NAME_VARIANTS, NON_NAME_TOKENS),
    'assignment_grade': _RoleRule('assignment_grade', GRADE_VARIANTS, FEEDBACK_TOKENS),
    'feedback': _RoleRule('feedback', FEEDBACK_VARIANTS),
}

# Order in which the generic cascade runs once literals, email and id are placed
CASCADE_ORDER = ('first_name', 'last_name', 'assignment_grade', 'feedback', 'full_name')

_EXACT_VARIANTS = {role: {v for v in rule.variants} for role, rule in RULES.items()}
_EXACT_VARIANTS['student_id'] = set(STUDENT_ID_VARIANTS)


def _is_exact_variant_of_other_role(header: str, role: str) -> bool:
    return any(header in variants for other, variants in _EXACT_VARIANTS.items() if other != role)


class _Pass:
    """State of one classification pass: normalized headers and claimed columns."""

    def __init__(self, headers: Sequence[str]):
        self.headers = [_norm(h) for h in headers]
        self.claimed: Set[int] = set()
        self.role_map = ColumnRoleMap(header_count=len(self.headers))

    def open_columns(self):
        for index, header in enumerate(self.headers):
            if index not in self.claimed and header:
                yield index, header

    def assign(self, role: str, index: int, rule: str):
        setattr(self.role_map, role, index)
        self.role_map.matched_by[role] = rule
        self.claimed.add(index)
        logger.debug("Column %d (%r) -> %s [%s]", index, self.headers[index], role, rule)


def _cascade(run: _Pass, rule: _RoleRule):
    """Steps 1-3 for one role. Returns (index, rule_name) or None."""
    # 1. exact
    for variant in rule.variants:
        for index, header in run.open_columns():
            if header == variant and rule.accepts(header):
                return index, 'exact'

    # 2. header contains variant; a header that is exactly another role's
    # variant ("Name", "Nombre") belongs to that role
    for variant in rule.variants:
        for index, header in run.open_columns():
            if variant in header and rule.accepts(header) and not _is_exact_variant_of_other_role(header, rule.role):
                return index, 'substring'

    # 3. variant contains header
    for index, header in run.open_columns():
        if len(header) < 3 or not rule.accepts(header):
            continue
        if _is_exact_variant_of_other_role(header, rule.role):
            continue
        if any(header in variant for variant in rule.variants):
            return index, 'reverse-substring'

    return None


def _first_name_heuristic(run: _Pass) -> Optional[int]:
    for index, header in run.open_columns():
        tokens = _tokens(header)
        if tokens & NON_NAME_TOKENS or _is_exact_variant_of_other_role(header, 'first_name'):
            continue
        if ('first' in header or 'name' in tokens) and 'last' not in header:
            return index
    return None


def _last_name_heuristic(run: _Pass) -> Optional[int]:
    for index, header in run.open_columns():
        tokens = _tokens(header)
        if tokens & NON_NAME_TOKENS or _is_exact_variant_of_other_role(header, 'last_name'):
            continue
        if 'last' in header or 'surname' in header or 'family' in header:
            return index
    return None


def find_email_column(headers: Sequence[str]) -> int:
    for index, header in enumerate(headers):
        if any(marker in _norm(header) for marker in EMAIL_MARKERS):
            return index
    return NOT_FOUND


def _is_id_header(header: str) -> bool:
    return bool(_tokens(header) & STUDENT_ID_TOKENS) or header in STUDENT_ID_VARIANTS


def find_id_column(headers: Sequence[str], claimed: Iterable[int] = ()) -> int:
    """First student id column not already taken by another role."""
    claimed = set(claimed)
    for index, header in enumerate(headers):
        if index not in claimed and _is_id_header(_norm(header)):
            return index
    return NOT_FOUND


def classify_headers(headers: Sequence[str]) -> ColumnRoleMap:
    """
    Map gradebook headers to column roles.

    Never raises for string input: duplicate or blank headers are skipped
    over and unresolved roles stay at NOT_FOUND (-1). A column is given to at
    most one role.

    Example:
        >>> m = classify_headers(["First name", "Last name", "Email address",
        ...                       "Identifier", "Assignment 1"])
        >>> (m.first_name, m.last_name, m.email, m.student_id, m.assignment_grade)
        (0, 1, 2, 3, 4)
    """
    headers = list(headers or [])
    run = _Pass(headers)
    if not headers:
        logger.debug("No headers to classify")
        return run.role_map

    # Moodle's own spelling first
    for index, header in run.open_columns():
        if not run.role_map.is_resolved('first_name') and header in ('first name', 'firstname'):
            run.assign('first_name', index, 'literal')
        elif not run.role_map.is_resolved('last_name') and header in ('last name', 'lastname'):
            run.assign('last_name', index, 'literal')

    email_index = find_email_column(headers)
    if email_index != NOT_FOUND and email_index not in run.claimed:
        run.assign('email', email_index, 'email')

    id_index = find_id_column(headers, run.claimed)
    if id_index != NOT_FOUND:
        run.assign('student_id', id_index, 'identifier')

    for role in CASCADE_ORDER:
        if run.role_map.is_resolved(role):
            continue
        found = _cascade(run, RULES[role])
        if found:
            run.assign(role, *found)

    if not run.role_map.is_resolved('first_name'):
        index = _first_name_heuristic(run)
        if index is not None:
            run.assign('first_name', index, 'heuristic')
    if not run.role_map.is_resolved('last_name'):
        index = _last_name_heuristic(run)
        if index is not None:
            run.assign('last_name', index, 'heuristic')

    unresolved = run.role_map.unresolved()
    if unresolved:
        logger.debug("Unresolved column roles: %s", ", ".join(unresolved))
    return run.role_map


def describe_classification(role_map: ColumnRoleMap, headers: Sequence[str]) -> List[str]:
    """Human-readable lines for the troubleshooting panel."""
    lines = []
    for role, rule in role_map.matched_by.items():
        lines.append(f"{role}: \"{role_map.header_for(role, headers)}\" ({rule})")
    for role in role_map.unresolved():
        lines.append(f"{role}: not found")
    return lines
