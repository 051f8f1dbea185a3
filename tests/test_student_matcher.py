"""
Test: student matching cascade and its individual strategies.
"""
import pytest
from moodle_grader.models import SubmissionCandidateName
from moodle_grader.services.name_normalizer import normalize_submission_name
from moodle_grader.services.student_matcher import (
    MatcherSettings, STRATEGIES, exact_full_name, find_best_student_match,
    first_last_exact, fuzzy_similarity, initials, known_unique_name,
    last_first_literal, match_submissions, normalize_for_fuzzy,
    similarity_score, token_overlap, unique_first_name,
)

from conftest import make_student


def candidate(full, first="", last="", raw=None):
    return SubmissionCandidateName(raw_source=raw if raw is not None else full,
                                   canonical_full_name=full, first_name=first, last_name=last)


@pytest.fixture
def settings():
    return MatcherSettings(fuzzy_threshold=0.5, min_token_overlap=0,
                           known_unique_names=("esi", "jediah", "beatrice", "miaoen", "hayeon"))


class TestCascade:
    def test_strategy_order(self):
        assert [name for name, _ in STRATEGIES] == [
            'exact', 'first+last', 'last,first', 'unique-first-name',
            'token-overlap', 'fuzzy', 'initials', 'known-unique-name',
        ]

    def test_exact_match(self, roster, settings):
        result = find_best_student_match(normalize_submission_name("Jane Doe_1_assignsubmission_file"),
                                         roster, settings)
        assert result.matched
        assert result.student is roster[0]
        assert result.strategy == 'exact'

    def test_exact_wins_over_fuzzy(self, settings):
        # Fuzzy scoring alone would pick "Jon-Smith" (same normalized string,
        # earlier in the roster); the exact record must still win.
        roster = [make_student("Jon-Smith"), make_student("Jon Smith", "Jon", "Smith")]
        assert fuzzy_similarity(candidate("Jon Smith"), roster, settings) is roster[0]
        result = find_best_student_match(candidate("Jon Smith"), roster, settings)
        assert result.student is roster[1]
        assert result.strategy == 'exact'

    def test_exact_short_circuits(self, settings, monkeypatch):
        import moodle_grader.services.student_matcher as sm

        def boom(*args):
            raise AssertionError("later strategy evaluated")

        patched = [sm.STRATEGIES[0]] + [(name, boom) for name, _ in sm.STRATEGIES[1:]]
        monkeypatch.setattr(sm, "STRATEGIES", patched)
        roster = [make_student("Jane Doe", "Jane", "Doe")]
        assert find_best_student_match(candidate("jane doe"), roster, settings).strategy == 'exact'

    def test_fuzzy_scenario(self, settings):
        roster = [make_student("John Smith", "John", "Smith")]
        result = find_best_student_match(candidate("Jon Smith", "Jon", "Smith"), roster, settings)
        assert result.student is roster[0]
        assert similarity_score("jonsmith", "johnsmith") == pytest.approx(8 / 9)
        assert fuzzy_similarity(candidate("Jon Smith"), roster, settings) is roster[0]

    def test_known_unique_name_scenario(self, settings):
        roster = [make_student("Esi Entsir-Eghan"), make_student("Kofi Mensah")]
        result = find_best_student_match(candidate("Esi K."), roster, settings)
        assert result.student is roster[0]
        assert known_unique_name(candidate("Esi K."), roster, settings) is roster[0]

    def test_empty_roster(self, settings):
        result = find_best_student_match(candidate("Jane Doe"), [], settings)
        assert not result.matched
        assert result.student is None
        assert result.strategy is None

    def test_empty_candidate(self, roster, settings):
        assert not find_best_student_match(normalize_submission_name(""), roster, settings).matched

    def test_no_match(self, roster, settings):
        assert not find_best_student_match(candidate("Zzyzx Qwerty"), roster, settings).matched

    def test_roster_not_mutated(self, roster, settings):
        before = [s.to_dict() for s in roster]
        find_best_student_match(candidate("Jon Smith"), roster, settings)
        assert [s.to_dict() for s in roster] == before

    @pytest.mark.parametrize("raw", ["", "x", "Jane", "Doe, Jane_onlinetext_", "??", "A B C D E", "Esi K."])
    def test_totality(self, roster, settings, raw):
        result = find_best_student_match(normalize_submission_name(raw), roster, settings)
        assert result.student is None or any(result.student is s for s in roster)

    def test_default_settings_from_config(self, roster):
        result = find_best_student_match(candidate("Jane Doe"), roster)
        assert result.student is roster[0]

    def test_match_submissions_batch(self, roster, settings):
        cands = [normalize_submission_name(n) for n in ("Jane Doe_1_assignsubmission_file", "")]
        results = match_submissions(cands, roster, settings)
        assert [r.matched for r in results] == [True, False]


class TestStrategies:
    def test_exact_is_case_insensitive_and_trimmed(self, settings):
        roster = [make_student("  Jane DOE ")]
        assert exact_full_name(candidate("jane doe"), roster, settings) is roster[0]

    def test_first_last_requires_both(self, roster, settings):
        assert first_last_exact(candidate("x", "Jane", ""), roster, settings) is None
        assert first_last_exact(candidate("x", "jane", "DOE"), roster, settings) is roster[0]

    def test_last_first_uses_raw(self, roster, settings):
        c = candidate("something else", raw="Smith, John_5_onlinetext_")
        assert last_first_literal(c, roster, settings) is roster[1]

    def test_last_first_needs_comma(self, roster, settings):
        assert last_first_literal(candidate("John Smith"), roster, settings) is None

    def test_unique_first_name(self, roster, settings):
        assert unique_first_name(candidate("Maria G."), roster, settings) is roster[3]

    def test_unique_first_name_disambiguates_by_last_name(self, settings):
        roster = [make_student("Anna Berg", "Anna", "Berg"), make_student("Anna Kowalska", "Anna", "Kowalska")]
        c = candidate("Anna M Kowalska", "Anna", "M Kowalska")
        assert unique_first_name(c, roster, settings) is roster[1]

    def test_unique_first_name_ambiguous(self, settings):
        roster = [make_student("Anna Berg", "Anna", "Berg"), make_student("Anna Kowalska", "Anna", "Kowalska")]
        assert unique_first_name(candidate("Anna X"), roster, settings) is None

    def test_token_overlap_highest_wins(self, settings):
        roster = [make_student("Maria Lopez"), make_student("Maria Garcia Lopez")]
        assert token_overlap(candidate("Garcia Lopez Maria"), roster, settings) is roster[1]

    def test_token_overlap_tie_keeps_roster_order(self, settings):
        roster = [make_student("Ana Lopez"), make_student("Luis Lopez")]
        assert token_overlap(candidate("Lopez"), roster, settings) is roster[0]

    def test_token_overlap_threshold(self):
        roster = [make_student("Ana Lopez")]
        strict = MatcherSettings(fuzzy_threshold=0.5, min_token_overlap=1, known_unique_names=())
        assert token_overlap(candidate("Lopez"), roster, strict) is None

    def test_fuzzy_below_threshold(self, settings):
        roster = [make_student("Bartholomew Quint")]
        assert fuzzy_similarity(candidate("Jane Doe"), roster, settings) is None

    def test_fuzzy_containment_score(self):
        assert similarity_score("janedoe", "janedoesmith") == pytest.approx(7 / 12)

    def test_initials_unique(self, settings):
        roster = [make_student("Quinn Ortega"), make_student("Jane Doe")]
        assert initials(candidate("X. O."), roster, settings) is roster[0]

    def test_initials_ambiguous(self, settings):
        roster = [make_student("Quinn Ortega"), make_student("Oscar Diaz")]
        assert initials(candidate("Q O"), roster, settings) is None

    def test_known_unique_name_needs_single_hit(self, settings):
        roster = [make_student("Esi Entsir-Eghan"), make_student("Esi Owusu")]
        assert known_unique_name(candidate("Esi K."), roster, settings) is None

    def test_known_unique_name_list_is_injectable(self):
        roster = [make_student("Zora Neale")]
        custom = MatcherSettings(fuzzy_threshold=0.99, min_token_overlap=5, known_unique_names=("zora",))
        assert known_unique_name(candidate("zora h"), roster, custom) is roster[0]
        assert known_unique_name(candidate("zora h"), roster, MatcherSettings(known_unique_names=())) is None


class TestHelpers:
    def test_normalize_for_fuzzy(self):
        assert normalize_for_fuzzy("Esi Entsir-Eghan!") == "esientsireghan"

    def test_similarity_identical(self):
        assert similarity_score("abc", "abc") == 1.0

    def test_similarity_empty(self):
        assert similarity_score("", "abc") == 0.0
