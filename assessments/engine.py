# assessments/engine.py
"""
Exam lifecycle: access verification, start (question sampling + freezing),
grading, OTP and candidate uploads.

State transitions are single conditional UPDATEs keyed on the current
status, so of two concurrent starts or submits only one can win:

    waiting --start--> in_progress --submit--> attended

"expired" is never stored; it is derived from expiry_date at read time.
"""
import logging
import random
import secrets
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from cores.exceptions import (
    AlreadyCompletedError,
    ExpiredError,
    InsufficientQuestionsError,
    InvalidOtpError,
    InvalidStateError,
    NoOtpError,
    NotFoundError,
    ValidationError,
)
from cores.mail import send_email
from cores.models import AuditLog
from cores.uploads import store_candidate_file
from exams.models import Exam, Question
from .models import ActivityLog, ExamQuestion

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()

CANDIDATE_FIELDS = ('name', 'email', 'phone', 'ip', 'user_agent')
ACTION_MAX_LENGTH = ActivityLog._meta.get_field('action').max_length


def get_exam(access_code):
    try:
        return Exam.objects.get(access_code=access_code)
    except Exam.DoesNotExist:
        raise NotFoundError("Exam not found")


def verify_access(access_code):
    exam = get_exam(access_code)
    if exam.is_expired():
        raise ExpiredError("Exam link has expired")
    if exam.status == Exam.Status.ATTENDED:
        raise AlreadyCompletedError("Exam has already been completed")
    return exam


# --- Start ---

def sample_questions(pool, count, rng=None):
    """
    Uniformly random `count` items of `pool`, without replacement.
    Fisher-Yates from the last index down to 1, then take the head.
    """
    rng = rng or _system_random
    items = list(pool)
    if len(items) < count:
        raise InsufficientQuestionsError(
            f"Not enough questions available. Needed {count}, found {len(items)}."
        )
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items[:count]


def _merge_candidate_info(exam_pk, candidate):
    provided = {k: v for k, v in candidate.items() if k in CANDIDATE_FIELDS and v not in (None, "")}
    if provided.get('email'):
        provided['email'] = provided['email'].strip().lower()

    exam = Exam.objects.select_for_update().get(pk=exam_pk)
    info = dict(exam.candidate_info or {})
    info.update(provided)
    info.setdefault('name', exam.candidate_name)
    info.setdefault('email', exam.candidate_email)

    changes = {'candidate_info': info}
    if provided.get('name'):
        changes['candidate_name'] = provided['name']
    if provided.get('email'):
        changes['candidate_email'] = provided['email']
    Exam.objects.filter(pk=exam_pk).update(**changes)


def start_exam(access_code, candidate=None, rng=None):
    """
    Begin (or resume) the attempt behind `access_code`.

    The first start samples `question_count` questions from the exam's topics
    and freezes them onto the exam. A start on an exam already in progress
    returns the questions frozen by the first one.

    Returns (exam, frozen questions in display order).
    """
    exam = get_exam(access_code)
    if exam.status == Exam.Status.ATTENDED:
        raise AlreadyCompletedError("Exam already completed")
    if exam.is_expired():
        raise ExpiredError("Exam link has expired")

    with transaction.atomic():
        _merge_candidate_info(exam.pk, candidate or {})

        if exam.status == Exam.Status.WAITING:
            pool = Question.objects.filter(topic__in=exam.topics.all()).order_by('id')
            selected = sample_questions(pool, exam.question_count, rng)

            now = timezone.now()
            won = Exam.objects.filter(pk=exam.pk, status=Exam.Status.WAITING).update(
                status=Exam.Status.IN_PROGRESS,
                started_at=now,
                completed_at=None,
                score=None,
                updated_at=now,
            )
            if won:
                ExamQuestion.objects.bulk_create([
                    ExamQuestion(
                        exam=exam,
                        position=position,
                        source_question_id=q.id,
                        origin_topic_id=q.topic_id,
                        question_text=q.text,
                        options=list(q.options),
                        correct_index=q.correct_index,
                    )
                    for position, q in enumerate(selected)
                ])
                AuditLog.record(None, 'START', exam, f"Started with {len(selected)} questions")
                logger.info(f"Exam {exam.pk} started with {len(selected)} questions")

        exam.refresh_from_db()
        if exam.status == Exam.Status.ATTENDED:
            raise AlreadyCompletedError("Exam already completed")

    return exam, list(exam.questions.all())


# --- Submit ---

def _selected_index(answers, question):
    value = answers.get(str(question.id), answers.get(question.id))
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if not 0 <= value < len(question.options):
        return None
    return value


def grade_answers(questions, answers):
    """Record each selection on the snapshot and return the number answered correctly."""
    correct = 0
    for question in questions:
        selected = _selected_index(answers, question)
        question.selected_option_index = selected
        question.is_correct = selected is not None and selected == question.correct_index
        if question.is_correct:
            correct += 1
    return correct


def score_percentage(correct, total):
    """correct/total as a 0-100 integer, halves rounded up."""
    if total == 0:
        raise InvalidStateError("Cannot grade an exam with no questions")
    return int((Decimal(correct) * 100 / Decimal(total)).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def parse_activity_logs(logs):
    """
    Client-reported activity entries -> unsaved ActivityLog rows.
    Returns None when `logs` is not a list (existing log is kept).
    """
    if not isinstance(logs, list):
        return None

    entries = []
    for index, raw in enumerate(logs):
        if not isinstance(raw, dict) or not isinstance(raw.get('action'), str) or not raw['action'].strip():
            raise ValidationError({'logs': [f"Entry #{index + 1}: action is required."]})
        action = raw['action'].strip()
        if len(action) > ACTION_MAX_LENGTH:
            raise ValidationError({'logs': [f"Entry #{index + 1}: action is too long."]})

        timestamp = raw.get('timestamp')
        if timestamp in (None, ""):
            timestamp = timezone.now()
        else:
            timestamp = parse_datetime(str(timestamp))
            if timestamp is None:
                raise ValidationError({'logs': [f"Entry #{index + 1}: timestamp is not an ISO 8601 datetime."]})
            if timezone.is_naive(timestamp):
                timestamp = timezone.make_aware(timestamp)

        details = raw.get('details')
        entries.append(ActivityLog(
            action=action,
            timestamp=timestamp,
            details="" if details is None else str(details),
        ))
    return entries


def submit_exam(access_code, answers, logs=None):
    """Grade the frozen questions against `answers` ({snapshot id: option index}). Accepted once."""
    exam = get_exam(access_code)
    if exam.status == Exam.Status.ATTENDED:
        raise AlreadyCompletedError("Exam already submitted")
    if exam.is_expired():
        raise ExpiredError("Exam link has expired")

    answers = answers or {}
    log_entries = parse_activity_logs(logs)

    with transaction.atomic():
        questions = list(exam.questions.all())
        if not questions:
            raise InvalidStateError("Cannot submit an exam with no materialized questions")

        correct = grade_answers(questions, answers)
        total = len(questions)
        score = score_percentage(correct, total)

        now = timezone.now()
        won = Exam.objects.filter(pk=exam.pk, status=Exam.Status.IN_PROGRESS).update(
            status=Exam.Status.ATTENDED,
            score=score,
            completed_at=now,
            updated_at=now,
        )
        if not won:
            current = Exam.objects.values_list('status', flat=True).get(pk=exam.pk)
            if current == Exam.Status.ATTENDED:
                raise AlreadyCompletedError("Exam already submitted")
            raise InvalidStateError("Exam has not been started")

        ExamQuestion.objects.bulk_update(questions, ['selected_option_index', 'is_correct'])

        if log_entries is not None:
            exam.logs.all().delete()
            for entry in log_entries:
                entry.exam = exam
            ActivityLog.objects.bulk_create(log_entries)

        AuditLog.record(None, 'SUBMIT', exam, f"Scored {score} ({correct}/{total})")

    logger.info(f"Exam {exam.pk} submitted: {correct}/{total} correct, score {score}")
    return {
        'score': score,
        'total_questions': total,
        'correct_answers': correct,
    }


# --- OTP ---

def generate_otp():
    return str(100000 + secrets.randbelow(900000))


def send_otp(access_code, email):
    """Issue a fresh code (replacing any previous one) and email it. Delivery failures don't undo it."""
    if not email:
        raise ValidationError({'email': ["Email is required"]})
    exam = get_exam(access_code)

    code = generate_otp()
    ttl = settings.OTP_TTL_MINUTES
    expires_at = timezone.now() + timedelta(minutes=ttl)
    Exam.objects.filter(pk=exam.pk).update(otp_code=code, otp_expires_at=expires_at)

    delivered = send_email(
        email,
        "Your Exam Verification Code",
        f"Your OTP code is: {code}. It expires in {ttl} minutes.",
    )
    if not delivered:
        logger.error(f"OTP for exam {exam.pk} generated but could not be emailed to {email}")
    return expires_at


def verify_otp(access_code, code):
    """
    A wrong code is always InvalidOtpError; a right one past its expiry is
    ExpiredError. The code stays valid until expiry unless OTP_SINGLE_USE is on.
    """
    exam = get_exam(access_code)
    if not exam.otp_code:
        raise NoOtpError("No OTP generated")

    submitted = "" if code is None else str(code)
    if not secrets.compare_digest(submitted.encode(), exam.otp_code.encode()):
        raise InvalidOtpError("Invalid OTP")

    if exam.otp_expires_at is None or timezone.now() > exam.otp_expires_at:
        raise ExpiredError("OTP expired")

    if settings.OTP_SINGLE_USE:
        Exam.objects.filter(pk=exam.pk, otp_code=exam.otp_code).update(otp_code="", otp_expires_at=None)


# --- Uploads ---

def upload_candidate_files(access_code, profile_pic=None, resume=None, documents=None):
    """Store the files and record their paths on candidate_info. Returns the recorded paths."""
    documents = documents or []
    if len(documents) > settings.CANDIDATE_MAX_DOCUMENTS:
        raise ValidationError({'documents': [f"At most {settings.CANDIDATE_MAX_DOCUMENTS} documents are allowed."]})
    exam = get_exam(access_code)

    paths = {}
    if profile_pic:
        paths['profile_pic'] = store_candidate_file('profile_pic', profile_pic)
    if resume:
        paths['resume'] = store_candidate_file('resume', resume)
    if documents:
        paths['documents'] = [store_candidate_file('documents', f) for f in documents]

    if paths:
        with transaction.atomic():
            locked = Exam.objects.select_for_update().get(pk=exam.pk)
            info = {**(locked.candidate_info or {}), **paths}
            Exam.objects.filter(pk=exam.pk).update(candidate_info=info)
    return paths
