"""Tests for the answer scorer and the aggregate report."""

import pytest

from docquiz.models import GradingResult, UserAnswer
from docquiz.scoring import ScoreIssue, max_score_for, percentage_of, score_answer, split_selections, summarize


def ans(text, qid="q1"):
    return UserAnswer(question_id=qid, answer=text)


def result(score, max_score, qid="q"):
    return GradingResult(question_id=qid, score=score, max_score=max_score, is_correct=score == max_score)


@pytest.mark.parametrize("given", ["yes", "Yes", "YES", "yEs"])
def test_yes_no_matches_any_case(make_question, given):
    q = make_question(correctAnswer="Yes", weight=5)
    out = score_answer(q, ans(given))
    assert out.score == 5
    assert out.max_score == 5
    assert out.is_correct is True


def test_yes_no_wrong_answer_scores_zero(make_question):
    q = make_question(correctAnswer="Yes", weight=5)
    out = score_answer(q, ans("No"))
    assert out.score == 0
    assert out.is_correct is False


def test_single_choice_does_not_trim_whitespace(make_question):
    q = make_question(type="multiple-choice-single", options=["Paris", "Rome"], correctAnswer="Paris", weight=3)
    assert score_answer(q, ans("paris")).score == 3
    out = score_answer(q, ans(" Paris "))
    assert out.score == 0
    assert out.is_correct is False


def test_single_choice_fails_closed_without_correct_answer(make_question):
    # key given only as a list: single-choice has nothing to compare against
    q = make_question(type="multiple-choice-single", options=["A", "B"], correctAnswers=["A"], weight=4)
    out = score_answer(q, ans("A"))
    assert out.score == 0
    assert out.max_score == 4
    assert out.issue is ScoreIssue.MISSING_CORRECT_ANSWER


def test_multi_example_one_right_one_wrong_nets_zero(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B", "C", "D"],
                      correctAnswers=["A", "B"], weight=10)
    out = score_answer(q, ans("A,C"))
    assert out.score == 0
    assert out.is_correct is False


def test_multi_example_exact_set_full_marks(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B", "C", "D"],
                      correctAnswers=["A", "B"], weight=10)
    out = score_answer(q, ans("A,B"))
    assert out.score == 10
    assert out.is_correct is True


@pytest.mark.parametrize("given", ["b,a", "B, A", " a ,B", "A,B,A"])
def test_multi_full_set_any_order_or_case(make_question, given):
    q = make_question(type="multiple-choice-multi", options=["A", "B", "C"], correctAnswers=["A", "B"], weight=6)
    out = score_answer(q, ans(given))
    assert out.score == 6
    assert out.is_correct is True


def test_multi_superset_scores_below_max(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B", "C", "D"],
                      correctAnswers=["A", "B", "C"], weight=9)
    out = score_answer(q, ans("A,B,C,D"))
    assert 0 <= out.score < 9
    assert out.score == 6
    assert out.is_correct is False


def test_multi_partial_credit_rounds_to_two_places(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B", "C", "D"],
                      correctAnswers=["A", "B", "C"], weight=10)
    out = score_answer(q, ans("A"))
    assert out.score == 3.33
    assert out.is_correct is False


def test_multi_empty_answer_scores_zero(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B"], correctAnswers=["A"], weight=2)
    out = score_answer(q, ans(""))
    assert out.score == 0
    assert out.is_correct is False
    assert out.issue is ScoreIssue.NO_USER_ANSWER


def test_multi_only_commas_scores_zero(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B"], correctAnswers=["A"], weight=2)
    out = score_answer(q, ans(" , ,"))
    assert out.score == 0
    assert out.is_correct is False


def test_multi_promotes_single_correct_answer(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B"], correctAnswer="B", weight=4)
    assert score_answer(q, ans("b")).score == 4


def test_multi_empty_key_fails_closed(make_question):
    q = make_question(type="multiple-choice-multi", options=["A", "B"], correctAnswers=[], weight=4)
    out = score_answer(q, ans("A"))
    assert out.score == 0
    assert out.issue is ScoreIssue.MISSING_CORRECT_ANSWER


@pytest.mark.parametrize("qtype", ["scale", "rating"])
def test_subjective_types_award_full_credit(make_question, qtype):
    q = make_question(type=qtype, options=["1", "2", "3", "4", "5"], correctAnswer="5", weight=3)
    out = score_answer(q, ans("2"))
    assert out.score == 3
    assert out.is_correct is True


@pytest.mark.parametrize("qtype", ["scale", "rating"])
def test_subjective_types_without_answer_score_zero(make_question, qtype):
    q = make_question(type=qtype, weight=3)
    out = score_answer(q, ans(""))
    assert out.score == 0
    assert out.is_correct is False


def test_question_without_key_awards_full_credit(make_question):
    q = make_question(type="multiple-choice-single", options=["A", "B"], weight=2)
    assert score_answer(q, ans("B")) == (2, 2, True, None)


def test_unknown_type_scores_zero_out_of_one(make_question):
    q = make_question(type="essay", correctAnswer="x", weight=8)
    out = score_answer(q, ans("x"))
    assert (out.score, out.max_score, out.is_correct) == (0, 1, False)
    assert out.issue is ScoreIssue.UNSUPPORTED_QUESTION_TYPE


def test_missing_question_never_raises():
    out = score_answer(None, ans("A"))
    assert (out.score, out.max_score, out.is_correct) == (0, 1, False)


def test_missing_answer_keeps_question_weight(make_question):
    q = make_question(correctAnswer="Yes", weight=7)
    out = score_answer(q, None)
    assert (out.score, out.max_score, out.is_correct) == (0, 7, False)
    assert out.issue is ScoreIssue.NO_USER_ANSWER


@pytest.mark.parametrize("weight,expected", [(None, 1), (0, 1), (-3, 1), (0.5, 1), (4, 4), ("6", 6)])
def test_weight_defaults_and_minimum(make_question, weight, expected):
    assert max_score_for(make_question(weight=weight)) == expected


def test_type_aliases_are_accepted(make_question):
    q = make_question(type="binary", correctAnswer="No", weight=2)
    assert score_answer(q, ans("no")).score == 2


def test_split_selections_dedupes_and_drops_blanks():
    assert split_selections("A, b,,a , C") == ["a", "b", "c"]


def test_summarize_example():
    report = summarize([result(5, 5), result(0, 10), result(3.33, 10)])
    assert report.total_score == pytest.approx(8.33)
    assert report.max_possible_score == 25
    assert report.percentage == 33.3


def test_summarize_empty():
    report = summarize([])
    assert (report.total_score, report.max_possible_score, report.percentage) == (0, 0, 0)
    assert report.grading_results == []


def test_percentage_rounds_half_up():
    # 1/8 = 12.5% exactly; 1/16 = 6.25% -> 6.3
    assert percentage_of(1, 8) == 12.5
    assert percentage_of(1, 16) == 6.3
    assert percentage_of(2, 3) == 66.7


def test_percentage_zero_when_nothing_possible():
    assert percentage_of(0, 0) == 0


def test_percentage_bounds():
    results = [result(s, m) for s, m in [(0, 1), (2.5, 5), (10, 10), (0.33, 1)]]
    report = summarize(results)
    assert 0 <= report.percentage <= 100
    expected = round(1000 * report.total_score / report.max_possible_score) / 10
    assert report.percentage == pytest.approx(expected, abs=0.1)


def test_test_result_wire_format():
    wire = summarize([result(1, 2, qid="a")]).to_wire()
    assert set(wire) == {"gradingResults", "totalScore", "maxPossibleScore", "percentage"}
    assert wire["gradingResults"][0]["questionId"] == "a"
    assert wire["gradingResults"][0]["isCorrect"] is False


def test_multi_rounding_up_to_full_marks_is_not_correct(make_question):
    keys = [f"k{i}" for i in range(300)]
    q = make_question(type="multiple-choice-multi", options=keys, correctAnswers=keys, weight=1)
    out = score_answer(q, ans(",".join(keys[:-1])))
    assert out.score == 1
    assert out.is_correct is False
