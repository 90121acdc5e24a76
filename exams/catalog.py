# clue_platform/exams/catalog.py
"""
Write-side operations for topics, their question banks and exam
configuration. Views validate the payload shape through serializers and hand
the cleaned data to these functions.
"""
import logging
import re
import secrets

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from cores.exceptions import InvalidStateError, NotFoundError, ValidationError
from cores.models import AuditLog
from .models import Exam, Question, Topic

logger = logging.getLogger(__name__)

TOPIC_CODE_ATTEMPTS = 10


# --- Topics ---

def generate_topic_code(title):
    letters = re.sub(r"[^a-z]", "", (title or "").lower())[:3] or "xxx"
    number = 1000 + secrets.randbelow(9000)  # 4 digits
    return f"{settings.TOPIC_CODE_PREFIX}-{letters}-{number}"


def question_errors(payload, index=None):
    """Validation messages for one question payload ({question_text, options, correct_index})."""
    label = f"Question #{index + 1}: " if index is not None else ""
    if not isinstance(payload, dict):
        return [f"{label}must be an object."]

    errors = []
    text = payload.get('question_text')
    if not isinstance(text, str) or not text.strip():
        errors.append(f"{label}text is required.")

    options = payload.get('options')
    if not isinstance(options, list) or len(options) != Question.OPTION_COUNT:
        errors.append(f"{label}exactly {Question.OPTION_COUNT} options are required.")
    elif any(not isinstance(opt, str) or not opt.strip() for opt in options):
        errors.append(f"{label}options must be non-empty strings.")

    correct_index = payload.get('correct_index')
    # bool is an int subclass; True must not pass as 1
    if (not isinstance(correct_index, int) or isinstance(correct_index, bool)
            or not 0 <= correct_index < Question.OPTION_COUNT):
        errors.append(f"{label}correct_index must be an integer between 0 and {Question.OPTION_COUNT - 1}.")
    return errors


def questions_errors(questions):
    errors = []
    for index, payload in enumerate(questions):
        errors.extend(question_errors(payload, index))
    return errors


def _question_fields(payload):
    return {
        'text': payload['question_text'].strip(),
        'options': [opt.strip() for opt in payload['options']],
        'correct_index': payload['correct_index'],
    }


def create_topic(data, actor=None):
    questions = data.get('questions') or []
    with transaction.atomic():
        topic = None
        for _ in range(TOPIC_CODE_ATTEMPTS):
            code = generate_topic_code(data['title'])
            if Topic.objects.filter(code=code).exists():
                continue
            try:
                # Savepoint so a lost race on the unique code doesn't poison the outer transaction
                with transaction.atomic():
                    topic = Topic.objects.create(
                        code=code,
                        title=data['title'].strip(),
                        description=data.get('description') or "",
                        level=data['level'],
                        created_by=actor if getattr(actor, 'is_authenticated', False) else None,
                    )
                break
            except IntegrityError:
                continue
        if topic is None:
            raise InvalidStateError("Could not allocate a unique topic code, try again.")

        if questions:
            Question.objects.bulk_create([
                Question(topic=topic, **_question_fields(q)) for q in questions
            ])
        AuditLog.record(actor, 'CREATE', topic, f"Created topic {topic.code} with {len(questions)} questions")

    logger.info(f"Topic {topic.code} created with {len(questions)} questions")
    return topic


def sync_topic_questions(topic, incoming):
    """
    Reconcile the topic's question bank with `incoming`:
    rows missing from the payload are deleted, rows with a known id are
    updated and the rest are inserted. Frozen exam snapshots are untouched.
    Must run inside a transaction.
    """
    existing_ids = set(topic.questions.values_list('id', flat=True))
    keep_ids = {q['id'] for q in incoming if q.get('id') in existing_ids}

    deleted, _ = topic.questions.exclude(id__in=keep_ids).delete()

    to_update, to_create = [], []
    for payload in incoming:
        fields = _question_fields(payload)
        if payload.get('id') in keep_ids:
            to_update.append(Question(id=payload['id'], topic=topic, **fields))
        else:
            # Unknown ids (or another topic's ids) are inserted as new rows
            to_create.append(Question(topic=topic, **fields))

    if to_update:
        Question.objects.bulk_update(to_update, ['text', 'options', 'correct_index'])
    if to_create:
        Question.objects.bulk_create(to_create)

    return {'deleted': deleted, 'updated': len(to_update), 'created': len(to_create)}


def update_topic(topic, data, actor=None):
    with transaction.atomic():
        topic.title = data['title'].strip()
        topic.description = data.get('description') or ""
        topic.level = data['level']
        # assigned_exams is maintained by the exam side only
        topic.save(update_fields=['title', 'description', 'level', 'updated_at'])

        summary = None
        if data.get('questions') is not None:
            summary = sync_topic_questions(topic, data['questions'])
        AuditLog.record(actor, 'UPDATE', topic, f"Updated topic {topic.code}: {summary or 'no question changes'}")

    logger.info(f"Topic {topic.code} updated ({summary})")
    return topic


def bulk_insert_questions(topic, questions):
    """Insert the valid entries, report the invalid ones. Returns (created, errors)."""
    valid, errors = [], []
    for index, payload in enumerate(questions):
        problems = question_errors(payload, index)
        if problems:
            errors.extend(problems)
            continue
        valid.append(Question(topic=topic, **_question_fields(payload)))

    created = Question.objects.bulk_create(valid) if valid else []
    return created, errors


# --- Exam configuration ---

def _resolve_topics(topic_ids):
    unique_ids = list(dict.fromkeys(topic_ids))
    topics = list(Topic.objects.filter(id__in=unique_ids))
    if len(topics) != len(unique_ids):
        found = {t.id for t in topics}
        missing = [tid for tid in unique_ids if tid not in found]
        raise NotFoundError(f"Some topics not found: {missing}")
    return topics


def _unique_access_code():
    while True:
        code = Exam._meta.get_field('access_code').get_default()
        if not Exam.objects.filter(access_code=code).exists():
            return code


def _link_topics(exam, added, removed):
    exam_ref = str(exam.pk)
    for topic in added:
        if exam_ref not in topic.assigned_exams:
            topic.assigned_exams = [*topic.assigned_exams, exam_ref]
            topic.save(update_fields=['assigned_exams', 'updated_at'])
    for topic in removed:
        if exam_ref in topic.assigned_exams:
            topic.assigned_exams = [ref for ref in topic.assigned_exams if ref != exam_ref]
            topic.save(update_fields=['assigned_exams', 'updated_at'])


CONFIG_FIELDS = (
    'title', 'description', 'candidate_email', 'candidate_name',
    'question_count', 'duration_minutes', 'expiry_date',
)


def create_exam(data, actor=None):
    if not data.get('topic_ids'):
        raise ValidationError({'topic_ids': ["At least one topic is required."]})
    topics = _resolve_topics(data['topic_ids'])

    with transaction.atomic():
        exam = Exam.objects.create(
            access_code=_unique_access_code(),
            status=Exam.Status.WAITING,
            created_by=actor if getattr(actor, 'is_authenticated', False) else None,
            **{field: data.get(field) for field in CONFIG_FIELDS if field in data},
        )
        exam.topics.set(topics)
        _link_topics(exam, topics, [])
        AuditLog.record(actor, 'CREATE', exam, f"Created exam '{exam.title}' for {exam.candidate_email}")

    logger.info(f"Exam {exam.pk} created for {exam.candidate_email} ({exam.question_count} questions)")
    return exam


def update_exam(exam_id, data, actor=None):
    """Full replace of the configuration; refused once the candidate has started."""
    try:
        exam = Exam.objects.get(pk=exam_id)
    except Exam.DoesNotExist:
        raise NotFoundError("Exam not found")

    if exam.started_at is not None or exam.status != Exam.Status.WAITING:
        raise InvalidStateError("Exam configuration is locked once the exam has started")
    if not data.get('topic_ids'):
        raise ValidationError({'topic_ids': ["At least one topic is required."]})
    topics = _resolve_topics(data['topic_ids'])

    with transaction.atomic():
        previous = set(exam.topics.all())
        for field in CONFIG_FIELDS:
            setattr(exam, field, data.get(field, Exam._meta.get_field(field).get_default()))
        # The candidate may have started between the read above and this write
        updated = Exam.objects.filter(
            pk=exam.pk, status=Exam.Status.WAITING, started_at__isnull=True,
        ).update(
            updated_at=timezone.now(),
            **{field: getattr(exam, field) for field in CONFIG_FIELDS},
        )
        if not updated:
            raise InvalidStateError("Exam configuration is locked once the exam has started")

        exam.topics.set(topics)
        _link_topics(exam, [t for t in topics if t not in previous], [t for t in previous if t not in topics])
        AuditLog.record(actor, 'UPDATE', exam, f"Updated configuration of exam '{exam.title}'")

    exam.refresh_from_db()
    return exam
