import itertools

import pytest
from rest_framework.test import APIClient

from exams import catalog
from exams.models import Question, Topic
from users.models import User

_topic_numbers = itertools.count(1000)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(
        username="admin@example.com",
        email="admin@example.com",
        password="secret123",
        first_name="Ada",
        role=User.Role.ADMIN,
    )


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


def question_payload(text="What is 2 + 2?", correct_index=1, options=None):
    return {
        "question_text": text,
        "options": options or ["3", "4", "5", "6"],
        "correct_index": correct_index,
    }


@pytest.fixture
def make_topic(db):
    def _make(title="Python", questions=3, level=Topic.Level.BEGINNER):
        topic = Topic.objects.create(
            code=f"clue-tst-{next(_topic_numbers)}",
            title=title,
            level=level,
        )
        for i in range(questions):
            Question.objects.create(
                topic=topic,
                text=f"{title} question {i}",
                options=["a", "b", "c", "d"],
                correct_index=i % 4,
            )
        return topic
    return _make


@pytest.fixture
def make_exam(db, admin_user):
    def _make(topics, question_count=2, **overrides):
        data = {
            "title": "Backend screening",
            "description": "",
            "candidate_email": "candidate@example.com",
            "candidate_name": "Casey",
            "topic_ids": [t.id for t in topics],
            "question_count": question_count,
            "duration_minutes": 30,
            "expiry_date": None,
        }
        data.update(overrides)
        return catalog.create_exam(data, actor=admin_user)
    return _make
