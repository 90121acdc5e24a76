import random
from collections import Counter

import pytest

from assessments.engine import grade_answers, parse_activity_logs, sample_questions, score_percentage
from assessments.models import ExamQuestion
from cores.exceptions import InsufficientQuestionsError, InvalidStateError, ValidationError


def frozen(pk, correct_index):
    return ExamQuestion(id=pk, position=pk, question_text=f"q{pk}", options=["a", "b", "c", "d"], correct_index=correct_index)


class TestSampling:
    def test_returns_requested_number_of_distinct_pool_items(self):
        pool = list(range(20))
        picked = sample_questions(pool, 7, random.Random(3))
        assert len(picked) == 7
        assert len(set(picked)) == 7
        assert set(picked) <= set(pool)

    def test_whole_pool_is_a_permutation(self):
        pool = list(range(6))
        assert sorted(sample_questions(pool, 6, random.Random(5))) == pool

    def test_pool_smaller_than_count_is_rejected(self):
        with pytest.raises(InsufficientQuestionsError) as exc:
            sample_questions([1, 2], 3)
        assert "Needed 3, found 2" in str(exc.value.detail)

    def test_does_not_mutate_the_pool(self):
        pool = [1, 2, 3, 4]
        sample_questions(pool, 2, random.Random(1))
        assert pool == [1, 2, 3, 4]

    def test_every_item_selected_with_count_over_pool_frequency(self):
        rng = random.Random(20240101)
        pool, count, trials = list(range(10)), 3, 20000
        hits = Counter()
        for _ in range(trials):
            hits.update(sample_questions(pool, count, rng))

        expected = count / len(pool)
        for item in pool:
            assert abs(hits[item] / trials - expected) < 0.02

    def test_first_position_is_uniform(self):
        rng = random.Random(7)
        pool, trials = list(range(5)), 20000
        firsts = Counter(sample_questions(pool, 5, rng)[0] for _ in range(trials))
        for item in pool:
            assert abs(firsts[item] / trials - 0.2) < 0.02


class TestGrading:
    def test_half_right_scores_fifty(self):
        questions = [frozen(1, 1), frozen(2, 2)]
        correct = grade_answers(questions, {"1": 1, "2": 0})

        assert correct == 1
        assert score_percentage(correct, len(questions)) == 50
        assert [q.selected_option_index for q in questions] == [1, 0]
        assert [q.is_correct for q in questions] == [True, False]

    def test_unanswered_and_malformed_answers_are_wrong(self):
        questions = [frozen(1, 0), frozen(2, 1), frozen(3, 2), frozen(4, 3)]
        correct = grade_answers(questions, {"2": True, "3": "2", "4": 9})

        assert correct == 0
        assert all(q.selected_option_index is None for q in questions)
        assert not any(q.is_correct for q in questions)

    def test_integer_keys_are_accepted(self):
        questions = [frozen(5, 3)]
        assert grade_answers(questions, {5: 3}) == 1

    @pytest.mark.parametrize("correct,total,expected", [
        (0, 4, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (5, 8, 63),
        (4, 4, 100),
    ])
    def test_score_rounds_half_up(self, correct, total, expected):
        assert score_percentage(correct, total) == expected

    def test_zero_questions_is_an_invalid_state(self):
        with pytest.raises(InvalidStateError):
            score_percentage(0, 0)


class TestActivityLogParsing:
    def test_non_list_means_keep_existing(self):
        assert parse_activity_logs(None) is None
        assert parse_activity_logs({"action": "tab_hidden"}) is None

    def test_entries_are_parsed(self):
        entries = parse_activity_logs([
            {"action": "tab_hidden", "timestamp": "2026-01-02T10:00:00Z", "details": "alt-tab"},
            {"action": "tab_visible"},
        ])
        assert [e.action for e in entries] == ["tab_hidden", "tab_visible"]
        assert entries[0].timestamp.year == 2026
        assert entries[0].details == "alt-tab"
        assert entries[1].details == ""

    def test_entry_without_action_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_activity_logs([{"details": "no action"}])

    def test_overlong_action_is_rejected_not_truncated(self):
        with pytest.raises(ValidationError) as exc:
            parse_activity_logs([{"action": "ok"}, {"action": "x" * 150}])
        assert exc.value.detail["logs"] == ["Entry #2: action is too long."]

    def test_action_at_column_limit_is_kept_whole(self):
        entries = parse_activity_logs([{"action": "y" * 100}])
        assert entries[0].action == "y" * 100

    def test_bad_timestamp_is_rejected(self):
        with pytest.raises(ValidationError):
            parse_activity_logs([{"action": "x", "timestamp": "yesterday"}])
