"""
Data types shared by the classifier, normalizer, matcher and the
gradebook/submission services.
"""
from dataclasses import dataclass, field, asdict, replace
from typing import Dict, List, Optional, Any, Sequence

NOT_FOUND = -1

ROLES = (
    "first_name",
    "last_name",
    "full_name",
    "student_id",
    "email",
    "assignment_grade",
    "feedback",
)

# Keys used by the JSON API and the upload UI
ROLE_KEYS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "full_name": "fullName",
    "student_id": "studentId",
    "email": "email",
    "assignment_grade": "assignmentGrade",
    "feedback": "feedback",
}


class MoodleGraderError(Exception):
    """Base error for caller mistakes (bad paths, unsupported files)."""


class GradebookError(MoodleGraderError):
    pass


class SubmissionError(MoodleGraderError):
    pass


@dataclass
class ColumnRoleMap:
    first_name: int = NOT_FOUND
    last_name: int = NOT_FOUND
    full_name: int = NOT_FOUND
    student_id: int = NOT_FOUND
    email: int = NOT_FOUND
    assignment_grade: int = NOT_FOUND
    feedback: int = NOT_FOUND
    header_count: int = 0
    matched_by: Dict[str, str] = field(default_factory=dict)

    def is_resolved(self, role: str) -> bool:
        return getattr(self, role) != NOT_FOUND

    def header_for(self, role: str, headers: Sequence[str]) -> Optional[str]:
        """Return the header string holding `role`, or None when unresolved."""
        index = getattr(self, role)
        if index == NOT_FOUND or index >= len(headers):
            return None
        return headers[index]

    def with_override(self, first_name: Optional[int] = None,
                      last_name: Optional[int] = None) -> "ColumnRoleMap":
        """
        Apply a manual first/last name column selection.

        Returns a new map; the classifier's output is left untouched so the
        caller can always fall back to it. Indices must point into the header
        row the map was classified from.
        """
        changes: Dict[str, Any] = {}
        matched_by = dict(self.matched_by)
        for role, index in (("first_name", first_name), ("last_name", last_name)):
            if index is None:
                continue
            index = int(index)
            if index != NOT_FOUND and not 0 <= index < self.header_count:
                raise ValueError(f"{role} index {index} is outside the header row (0..{self.header_count - 1})")
            changes[role] = index
            matched_by[role] = "manual"
        return replace(self, matched_by=matched_by, **changes)

    def unresolved(self) -> List[str]:
        return [role for role in ROLES if not self.is_resolved(role)]

    def to_dict(self) -> Dict[str, Any]:
        data = {ROLE_KEYS[role]: getattr(self, role) for role in ROLES}
        data["matchedBy"] = {ROLE_KEYS[r]: rule for r, rule in self.matched_by.items()}
        return data


@dataclass
class StudentRecord:
    identifier: str
    full_name: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    original_row: Dict[str, str] = field(default_factory=dict)
    # Cell values by column position; duplicate headers collapse in original_row
    original_values: List[str] = field(default_factory=list)
    grade: str = ""
    feedback: str = ""
    edited: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SubmissionCandidateName:
    raw_source: str
    canonical_full_name: str
    first_name: str = ""
    last_name: str = ""
    synthetic_id: str = ""

    @property
    def is_matchable(self) -> bool:
        return bool(self.canonical_full_name)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MatchResult:
    student: Optional[StudentRecord] = None
    strategy: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.student is not None

    @staticmethod
    def no_match() -> "MatchResult":
        return MatchResult()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched": self.matched,
            "strategy": self.strategy,
            "student": self.student.to_dict() if self.student else None,
        }


@dataclass
class SubmissionFile:
    arcname: str                 # path inside the zip
    filename: str                # basename.ext
    size: int                    # bytes
    content_type: Optional[str] = None


@dataclass
class SubmissionFolder:
    folder: str                  # "Jane Doe_123456_assignsubmission_file"
    candidate: SubmissionCandidateName
    files: List[SubmissionFile] = field(default_factory=list)
    selected_file: Optional[str] = None
    text: str = ""
    is_image: bool = False
    is_empty: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BatchReport:
    matches: List[Dict[str, Any]] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matches": self.matches,
            "unmatched": list(self.unmatched),
            "warnings": list(self.warnings),
        }
