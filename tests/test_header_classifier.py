"""
Test: gradebook column role detection.
"""
import itertools

import pytest
from moodle_grader.models import NOT_FOUND, ROLES
from moodle_grader.services.header_classifier import (
    classify_headers, describe_classification, find_email_column, find_id_column,
)


class TestMoodleExports:
    def test_basic_gradebook(self):
        m = classify_headers(["First name", "Last name", "Email address", "Identifier", "Assignment 1"])
        assert m.first_name == 0
        assert m.last_name == 1
        assert m.email == 2
        assert m.student_id == 3
        assert m.assignment_grade == 4
        assert m.feedback == NOT_FOUND

    def test_full_gradebook_export(self):
        headers = ["First name", "Last name", "ID number", "Email address",
                   "Assignment: Essay 1 (Real)", "Feedback comments",
                   "Last downloaded from this course"]
        m = classify_headers(headers)
        assert (m.first_name, m.last_name, m.student_id, m.email) == (0, 1, 2, 3)
        assert m.assignment_grade == 4
        assert m.feedback == 5
        assert m.full_name == NOT_FOUND

    def test_grading_worksheet(self):
        headers = ["Identifier", "Full name", "Email address", "Status", "Grade",
                   "Maximum Grade", "Grade can be changed", "Last modified (submission)",
                   "Last modified (grade)", "Feedback comments"]
        m = classify_headers(headers)
        assert m.student_id == 0
        assert m.full_name == 1
        assert m.email == 2
        assert m.assignment_grade == 4
        assert m.feedback == 9
        # timestamp columns are never name columns
        assert m.first_name == NOT_FOUND
        assert m.last_name == NOT_FOUND

    def test_literal_beats_variants(self):
        m = classify_headers(["Given name", "First name", "Surname"])
        assert m.first_name == 1
        assert m.matched_by["first_name"] == "literal"
        assert m.last_name == 2

    def test_matched_by_records_rules(self):
        m = classify_headers(["First name", "Last name", "Student score"])
        assert m.matched_by["first_name"] == "literal"
        assert m.matched_by["assignment_grade"] == "substring"


class TestLanguages:
    @pytest.mark.parametrize("first, last", [
        ("Prénom", "Nom"),
        ("Nombre", "Apellido"),
        ("Vorname", "Nachname"),
        ("Imię", "Nazwisko"),
    ])
    def test_name_columns(self, first, last):
        m = classify_headers(["Email", first, last])
        assert m.first_name == 1
        assert m.last_name == 2

    def test_spanish_grade_and_feedback(self):
        m = classify_headers(["Nombre", "Apellido", "Nota", "Comentarios"])
        assert m.assignment_grade == 2
        assert m.feedback == 3


class TestFallbacks:
    def test_reverse_substring_for_abbreviated_header(self):
        # "Fam" is contained in "family name"
        m = classify_headers(["Forename", "Fam"])
        assert m.first_name == 0
        assert m.last_name == 1
        assert m.matched_by["last_name"] == "reverse-substring"

    def test_grade_column_skips_feedback_columns(self):
        m = classify_headers(["Grade feedback", "Score"])
        assert m.assignment_grade == 1
        assert m.feedback == 0

    def test_name_header_goes_to_full_name(self):
        m = classify_headers(["Name", "Email"])
        assert m.full_name == 0
        assert m.first_name == NOT_FOUND

    def test_column_used_once(self):
        m = classify_headers(["First name"])
        assert m.first_name == 0
        assert m.full_name == NOT_FOUND


class TestDegenerateInput:
    def test_empty_list(self):
        m = classify_headers([])
        assert all(getattr(m, role) == NOT_FOUND for role in ROLES)

    def test_blank_and_duplicate_headers(self):
        m = classify_headers(["", "First name", "First name", "   ", "Last name"])
        assert m.first_name == 1
        assert m.last_name == 4

    def test_none_input(self):
        assert classify_headers(None).first_name == NOT_FOUND


class TestPermutations:
    HEADERS = ["First name", "Last name", "Email address", "Identifier", "Assignment 1", "Feedback comments"]

    def test_roles_follow_content(self):
        expected = {role: self.HEADERS[getattr(classify_headers(self.HEADERS), role)]
                    for role in ("first_name", "last_name", "email", "student_id", "assignment_grade", "feedback")}
        for perm in itertools.permutations(self.HEADERS):
            m = classify_headers(list(perm))
            for role, header in expected.items():
                assert m.header_for(role, perm) == header


class TestOverride:
    def test_manual_override(self):
        m = classify_headers(["Col A", "Col B", "Email"])
        assert m.first_name == NOT_FOUND
        o = m.with_override(first_name=1, last_name=0)
        assert (o.first_name, o.last_name) == (1, 0)
        assert o.email == m.email
        assert o.matched_by["first_name"] == "manual"
        # the classifier output is untouched
        assert m.first_name == NOT_FOUND

    def test_override_out_of_range(self):
        m = classify_headers(["First name", "Last name"])
        with pytest.raises(ValueError):
            m.with_override(first_name=5)

    def test_round_trip_dict_keys(self):
        d = classify_headers(["First name", "Last name"]).to_dict()
        assert d["firstName"] == 0
        assert d["lastName"] == 1
        assert d["assignmentGrade"] == NOT_FOUND


class TestHelpers:
    def test_find_id_column_skips_claimed(self):
        assert find_id_column(["Identifier", "Username"], claimed={0}) == 1
        assert find_id_column(["Identifier"], claimed={0}) == NOT_FOUND

    def test_find_email_column(self):
        assert find_email_column(["Name", "E-mail"]) == 1
        assert find_email_column(["Name"]) == NOT_FOUND

    def test_find_id_column_whole_token(self):
        assert find_id_column(["Paid", "Username"]) == 1
        assert find_id_column(["Student ID"]) == 0

    def test_describe(self):
        headers = ["First name", "Last name"]
        lines = describe_classification(classify_headers(headers), headers)
        assert 'first_name: "First name" (literal)' in lines
        assert "feedback: not found" in lines
