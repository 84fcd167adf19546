"""
Unit tests for the practice and mock interview step machines
"""
from datetime import datetime, timedelta

import pytest

from services.practice_flow import (
    PracticeFlow, MockInterview, InvalidTransitionError, questions_for_duration,
    STEP_SETUP, STEP_QUESTION, STEP_FEEDBACK, STEP_READY, STEP_IN_PROGRESS, STEP_COMPLETED,
)

NOW = datetime(2026, 3, 10, 9, 0, 0)
QUESTION = {"question_text": "Tell me about a conflict you resolved.", "question_type": "behavioral", "time_to_answer": 120}


def make_questions(count):
    return [
        {"question_text": f"Question {i}", "question_type": "behavioral", "time_to_answer": 120}
        for i in range(count)
    ]


def test_questions_for_duration():
    assert questions_for_duration(15) == 5
    assert questions_for_duration(30) == 10
    assert questions_for_duration(45) == 15
    assert questions_for_duration(60) == 15


class TestPracticeFlow:

    def test_full_cycle(self):
        """
        Test the practice loop.

        This test verifies:
        - start moves setup -> question with a deadline from time_to_answer
        - submit moves question -> feedback
        - reset moves feedback -> setup and keeps a history entry
        """
        flow = PracticeFlow()
        assert flow.step == STEP_SETUP

        flow.start(QUESTION, NOW)
        assert flow.step == STEP_QUESTION
        assert flow.deadline == NOW + timedelta(seconds=120)

        flow.save_draft("draft text")
        flow.submit("final answer", {"score": 82}, NOW + timedelta(seconds=30))
        assert flow.step == STEP_FEEDBACK
        assert flow.answer == "final answer"
        assert flow.timed_out is False

        flow.reset()
        assert flow.step == STEP_SETUP
        assert flow.question is None
        assert flow.history == [{"question_text": QUESTION["question_text"], "score": 82, "timed_out": False}]

    def test_cannot_submit_outside_question_step(self):
        flow = PracticeFlow()
        with pytest.raises(InvalidTransitionError):
            flow.submit("answer", None, NOW)
        with pytest.raises(InvalidTransitionError):
            flow.reset()

    def test_cannot_start_twice(self):
        flow = PracticeFlow()
        flow.start(QUESTION, NOW)
        with pytest.raises(InvalidTransitionError):
            flow.start(QUESTION, NOW)

    def test_submit_within_grace_is_accepted(self):
        flow = PracticeFlow()
        flow.start(QUESTION, NOW)
        flow.submit("just in time", None, NOW + timedelta(seconds=123))
        assert flow.step == STEP_FEEDBACK

    def test_late_submit_is_rejected(self):
        flow = PracticeFlow()
        flow.start(QUESTION, NOW)
        with pytest.raises(InvalidTransitionError):
            flow.submit("too late", None, NOW + timedelta(seconds=200))

    def test_advance_clock_submits_draft(self):
        """An expired question auto-submits the saved draft and waits for feedback."""
        flow = PracticeFlow()
        flow.start(QUESTION, NOW)
        flow.save_draft("partial thoughts")

        assert flow.advance_clock(NOW + timedelta(seconds=60)) is False
        assert flow.advance_clock(NOW + timedelta(seconds=300)) is True
        assert flow.step == STEP_FEEDBACK
        assert flow.answer == "partial thoughts"
        assert flow.timed_out is True
        assert flow.answered_at == flow.deadline
        assert flow.awaiting_feedback is True

        flow.attach_feedback({"score": 70})
        assert flow.awaiting_feedback is False

    def test_view_reports_time_remaining(self):
        flow = PracticeFlow()
        flow.start(QUESTION, NOW)
        assert flow.view(NOW + timedelta(seconds=20))["time_remaining"] == 100
        assert flow.view(NOW + timedelta(seconds=500))["time_remaining"] == 0

    def test_snapshot_round_trip_keeps_timing(self):
        flow = PracticeFlow()
        flow.start(QUESTION, NOW)
        flow.save_draft("kept")
        restored = PracticeFlow.from_dict(flow.to_dict())
        assert restored.step == STEP_QUESTION
        assert restored.deadline == flow.deadline
        assert restored.draft == "kept"
        assert PracticeFlow.from_dict(None).step == STEP_SETUP


class TestMockInterview:

    def test_requires_questions(self):
        with pytest.raises(ValueError):
            MockInterview().prepare([])

    def test_answer_flow_completes(self):
        """
        Test a mock interview end to end.

        This test verifies:
        - begin starts the clock for the first question
        - each answer starts the next question's clock
        - complete is only possible after the last answer
        """
        interview = MockInterview(time_limit=120)
        interview.prepare(make_questions(2))
        assert interview.step == STEP_READY

        with pytest.raises(InvalidTransitionError):
            interview.answer("early", NOW)

        interview.begin(NOW)
        assert interview.step == STEP_IN_PROGRESS
        assert interview.current_question["question_text"] == "Question 0"

        answered_at = NOW + timedelta(seconds=40)
        interview.answer("first", answered_at)
        assert interview.deadline == answered_at + timedelta(seconds=120)
        with pytest.raises(InvalidTransitionError):
            interview.complete({}, answered_at)

        interview.answer("second", answered_at + timedelta(seconds=10))
        assert interview.all_answered is True
        assert interview.deadline is None
        assert interview.current_question is None

        interview.complete({"overall_score": 80}, answered_at + timedelta(seconds=11))
        assert interview.step == STEP_COMPLETED
        with pytest.raises(InvalidTransitionError):
            interview.answer("extra", answered_at + timedelta(seconds=12))

    def test_advance_clock_chains_deadlines(self):
        """A long absence expires several questions; each records its draft at its own deadline."""
        interview = MockInterview(time_limit=120)
        interview.prepare(make_questions(3))
        interview.begin(NOW)
        interview.save_draft("draft for first")

        expired = interview.advance_clock(NOW + timedelta(seconds=250))
        assert [entry["question_index"] for entry in expired] == [0, 1]
        assert expired[0]["answer"] == "draft for first"
        assert expired[1]["answer"] == ""
        assert all(entry["timed_out"] for entry in expired)
        assert expired[1]["answered_at"] == (NOW + timedelta(seconds=240)).isoformat()
        assert interview.current_question["question_text"] == "Question 2"
        assert interview.deadline == NOW + timedelta(seconds=360)

    def test_late_answer_is_rejected(self):
        interview = MockInterview(time_limit=120)
        interview.prepare(make_questions(1))
        interview.begin(NOW)
        with pytest.raises(InvalidTransitionError):
            interview.answer("late", NOW + timedelta(seconds=200))

    def test_view_progress(self):
        interview = MockInterview(time_limit=120)
        interview.prepare(make_questions(3))
        interview.begin(NOW)
        interview.answer("one", NOW + timedelta(seconds=10))
        view = interview.view(NOW + timedelta(seconds=40))
        assert view["progress"] == {"answered": 1, "total": 3}
        assert view["time_remaining"] == 90

    def test_snapshot_round_trip(self):
        interview = MockInterview(time_limit=90)
        interview.prepare(make_questions(2))
        interview.begin(NOW)
        restored = MockInterview.from_dict(interview.to_dict())
        assert restored.time_limit == 90
        assert restored.step == STEP_IN_PROGRESS
        assert restored.deadline == NOW + timedelta(seconds=90)
