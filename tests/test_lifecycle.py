from datetime import timedelta
from unittest import mock

import pytest
from django.utils import timezone

from assessments import engine
from assessments.models import ActivityLog, ExamQuestion
from cores.exceptions import AlreadyCompletedError, InvalidStateError
from cores.models import AuditLog
from exams.models import Exam, Question

pytestmark = pytest.mark.django_db


def start(client, exam, **payload):
    return client.post(f"/api/exams/{exam.access_code}/start/", payload, format="json")


def submit(client, exam, answers=None, **payload):
    return client.post(
        f"/api/exams/{exam.access_code}/submit/", {"answers": answers or {}, **payload}, format="json",
    )


@pytest.fixture
def exam(make_topic, make_exam):
    topic = make_topic(questions=5)
    return make_exam([topic], question_count=2)


class TestStart:
    def test_start_freezes_questions_without_answers(self, api_client, exam):
        response = start(api_client, exam, candidate_name="Casey Candidate", candidate_phone="555-0100")

        assert response.status_code == 200
        body = response.json()
        assert body["exam"]["candidate_name"] == "Casey Candidate"
        assert body["exam"]["duration_minutes"] == 30
        assert len(body["questions"]) == 2
        for question in body["questions"]:
            assert set(question) == {"id", "question_text", "options"}

        exam.refresh_from_db()
        assert exam.status == Exam.Status.IN_PROGRESS
        assert exam.started_at is not None
        assert exam.candidate_info["phone"] == "555-0100"
        assert exam.candidate_info["email"] == "candidate@example.com"
        assert ExamQuestion.objects.filter(exam=exam).count() == 2
        assert AuditLog.objects.filter(action="START", target_object_id=str(exam.pk)).exists()

    def test_frozen_questions_come_from_exam_topics(self, api_client, make_topic, make_exam):
        chosen = make_topic(title="Chosen", questions=3)
        make_topic(title="Ignored", questions=10)
        exam = make_exam([chosen], question_count=3)

        start(api_client, exam)

        sources = set(exam.questions.values_list("source_question_id", flat=True))
        assert sources == set(chosen.questions.values_list("id", flat=True))

    def test_admin_detail_shows_correct_answers(self, api_client, admin_client, exam):
        start(api_client, exam)

        response = admin_client.get(f"/api/exams/{exam.pk}/")

        assert response.status_code == 200
        questions = response.json()["questions"]
        assert len(questions) == 2
        assert all("correct_index" in q for q in questions)

    def test_insufficient_pool_leaves_exam_waiting(self, api_client, make_topic, make_exam):
        exam = make_exam([make_topic(questions=1)], question_count=3)

        response = start(api_client, exam)

        assert response.status_code == 400
        assert response.json()["code"] == "INSUFFICIENT_QUESTIONS"
        assert "Needed 3, found 1" in response.json()["message"]
        exam.refresh_from_db()
        assert exam.status == Exam.Status.WAITING
        assert exam.started_at is None
        assert not exam.questions.exists()

    def test_candidate_email_is_normalised_everywhere(self, api_client, exam):
        start(api_client, exam, candidate_email="  Casey.New@Example.COM ")

        exam.refresh_from_db()
        assert exam.candidate_email == "casey.new@example.com"
        assert exam.candidate_info["email"] == "casey.new@example.com"

    def test_second_start_resumes_same_questions(self, api_client, exam):
        first = start(api_client, exam).json()["questions"]
        second = start(api_client, exam).json()["questions"]

        assert [q["id"] for q in second] == [q["id"] for q in first]
        assert ExamQuestion.objects.filter(exam=exam).count() == 2

    def test_catalog_edits_do_not_reach_frozen_questions(self, api_client, exam):
        start(api_client, exam)
        frozen = exam.questions.first()

        Question.objects.filter(pk=frozen.source_question_id).update(text="Rewritten", correct_index=3)
        Question.objects.all().delete()

        frozen.refresh_from_db()
        assert frozen.question_text != "Rewritten"
        assert exam.questions.count() == 2

    def test_start_after_expiry_is_rejected(self, api_client, make_topic, make_exam):
        exam = make_exam([make_topic()], expiry_date=timezone.now() - timedelta(minutes=1))

        response = start(api_client, exam)

        assert response.status_code == 400
        assert response.json()["code"] == "EXPIRED"

    def test_start_unknown_code_is_404(self, api_client):
        response = api_client.post("/api/exams/deadbeef/start/", {}, format="json")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestSubmit:
    def test_half_right_scores_fifty(self, api_client, exam):
        questions = start(api_client, exam).json()["questions"]
        frozen = {q.id: q for q in exam.questions.all()}
        first, second = questions
        answers = {
            str(first["id"]): frozen[first["id"]].correct_index,
            str(second["id"]): (frozen[second["id"]].correct_index + 1) % 4,
        }

        response = submit(api_client, exam, answers)

        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 50
        assert body["total_questions"] == 2
        assert body["correct_answers"] == 1

        exam.refresh_from_db()
        assert exam.status == Exam.Status.ATTENDED
        assert exam.score == 50
        assert exam.completed_at is not None
        assert sorted(exam.questions.values_list("is_correct", flat=True)) == [False, True]

    def test_second_submit_is_rejected_and_score_kept(self, api_client, exam):
        start(api_client, exam)
        submit(api_client, exam)
        exam.refresh_from_db()
        first_score = exam.score

        all_right = {str(q.id): q.correct_index for q in exam.questions.all()}
        response = submit(api_client, exam, all_right)

        assert response.status_code == 400
        assert response.json()["code"] == "COMPLETED"
        exam.refresh_from_db()
        assert exam.score == first_score == 0

    def test_start_after_submit_is_rejected(self, api_client, exam):
        start(api_client, exam)
        submit(api_client, exam)

        response = start(api_client, exam)

        assert response.status_code == 400
        assert response.json()["code"] == "COMPLETED"

    def test_submit_before_start_is_invalid_state(self, api_client, exam):
        response = submit(api_client, exam)

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATE"
        exam.refresh_from_db()
        assert exam.status == Exam.Status.WAITING

    def test_logs_replace_previous_entries(self, api_client, exam):
        start(api_client, exam)
        ActivityLog.objects.create(exam=exam, action="stale")
        logs = [
            {"action": "tab_hidden", "timestamp": "2026-03-01T09:00:00Z"},
            {"action": "copy_attempt", "details": "ctrl+c"},
        ]

        response = submit(api_client, exam, logs=logs)

        assert response.status_code == 200
        assert list(exam.logs.values_list("action", flat=True)) == ["tab_hidden", "copy_attempt"]

    def test_missing_logs_keep_previous_entries(self, api_client, exam):
        start(api_client, exam)
        ActivityLog.objects.create(exam=exam, action="fullscreen_exit")

        submit(api_client, exam)

        assert list(exam.logs.values_list("action", flat=True)) == ["fullscreen_exit"]

    def test_invalid_log_entry_is_rejected_before_grading(self, api_client, exam):
        start(api_client, exam)

        response = submit(api_client, exam, logs=[{"details": "no action"}])

        assert response.status_code == 400
        exam.refresh_from_db()
        assert exam.status == Exam.Status.IN_PROGRESS

    def test_overlong_log_action_is_rejected(self, api_client, exam):
        start(api_client, exam)
        ActivityLog.objects.create(exam=exam, action="tab_hidden")

        response = submit(api_client, exam, logs=[{"action": "x" * 150}])

        assert response.status_code == 400
        assert response.json()["errors"]["logs"] == ["Entry #1: action is too long."]
        assert list(exam.logs.values_list("action", flat=True)) == ["tab_hidden"]
        exam.refresh_from_db()
        assert exam.status == Exam.Status.IN_PROGRESS

    def test_submit_after_expiry_is_rejected(self, api_client, exam):
        start(api_client, exam)
        Exam.objects.filter(pk=exam.pk).update(expiry_date=timezone.now() - timedelta(seconds=1))

        response = submit(api_client, exam)

        assert response.status_code == 400
        assert response.json()["code"] == "EXPIRED"
        exam.refresh_from_db()
        assert exam.status == Exam.Status.IN_PROGRESS
        assert exam.score is None

    def test_concurrent_submit_loser_gets_already_completed(self, api_client, exam):
        start(api_client, exam)
        stale = Exam.objects.get(pk=exam.pk)
        submit(api_client, exam)

        # The loser read the exam before the winner committed
        with mock.patch.object(engine, "get_exam", return_value=stale):
            with pytest.raises(AlreadyCompletedError):
                engine.submit_exam(exam.access_code, {})

        exam.refresh_from_db()
        assert AuditLog.objects.filter(action="SUBMIT", target_object_id=str(exam.pk)).count() == 1

    def test_concurrent_start_loser_resumes_winner_questions(self, exam):
        stale = Exam.objects.get(pk=exam.pk)
        _, winner_questions = engine.start_exam(exam.access_code)

        with mock.patch.object(engine, "get_exam", return_value=stale):
            _, loser_questions = engine.start_exam(exam.access_code)

        assert [q.id for q in loser_questions] == [q.id for q in winner_questions]
        assert ExamQuestion.objects.filter(exam=exam).count() == 2

    def test_submit_without_frozen_questions_is_invalid_state(self, exam):
        Exam.objects.filter(pk=exam.pk).update(status=Exam.Status.IN_PROGRESS)

        with pytest.raises(InvalidStateError):
            engine.submit_exam(exam.access_code, {})
