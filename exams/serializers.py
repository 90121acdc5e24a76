# clue_platform/exams/serializers.py
from rest_framework import serializers

from assessments.serializers import ActivityLogSerializer, FrozenQuestionSerializer
from . import catalog
from .models import Exam, Question, Topic


def _actor(serializer):
    request = serializer.context.get('request')
    return getattr(request, 'user', None)


# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    # Map API 'question_text' to model 'text'
    question_text = serializers.CharField(source='text', trim_whitespace=False, allow_blank=True)
    options = serializers.ListField(child=serializers.CharField(allow_blank=True, trim_whitespace=False))
    topic_title = serializers.CharField(source='topic.title', read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'topic', 'topic_title', 'question_text', 'options', 'correct_index', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        instance = self.instance
        payload = {
            'question_text': attrs.get('text', getattr(instance, 'text', None)),
            'options': attrs.get('options', getattr(instance, 'options', None)),
            'correct_index': attrs.get('correct_index', getattr(instance, 'correct_index', None)),
        }
        errors = catalog.question_errors(payload)
        if errors:
            raise serializers.ValidationError(errors)
        if 'text' in attrs:
            attrs['text'] = attrs['text'].strip()
        if 'options' in attrs:
            attrs['options'] = [opt.strip() for opt in attrs['options']]
        return attrs


class BulkQuestionSerializer(serializers.Serializer):
    topic_id = serializers.IntegerField()
    questions = serializers.ListField(child=serializers.JSONField(), allow_empty=False)


# --- Topic Serializers ---

class TopicSerializer(serializers.ModelSerializer):
    questions_count = serializers.IntegerField(read_only=True)
    created_by = serializers.CharField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = Topic
        fields = [
            'id', 'code', 'title', 'description', 'level',
            'questions_count', 'assigned_exams', 'created_by', 'created_at',
        ]


class TopicDetailSerializer(TopicSerializer):
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta(TopicSerializer.Meta):
        fields = TopicSerializer.Meta.fields + ['questions']


class TopicWriteSerializer(serializers.Serializer):
    """Topic fields plus its embedded question bank ({id?, question_text, options, correct_index})."""
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    level = serializers.ChoiceField(choices=Topic.Level.choices)
    questions = serializers.ListField(child=serializers.JSONField(), required=False)

    def validate_questions(self, questions):
        errors = catalog.questions_errors(questions)
        seen_ids = set()
        for index, payload in enumerate(questions):
            if not isinstance(payload, dict):
                continue
            raw_id = payload.get('id')
            if raw_id in (None, ""):
                payload.pop('id', None)
                continue
            try:
                payload['id'] = int(raw_id)
            except (TypeError, ValueError):
                errors.append(f"Question #{index + 1}: id must be an integer.")
                continue
            if payload['id'] in seen_ids:
                errors.append(f"Question #{index + 1}: id {payload['id']} appears more than once.")
            seen_ids.add(payload['id'])
        if errors:
            raise serializers.ValidationError(errors)
        return questions

    def create(self, validated_data):
        validated_data.setdefault('questions', [])
        return catalog.create_topic(validated_data, actor=_actor(self))

    def update(self, instance, validated_data):
        return catalog.update_topic(instance, validated_data, actor=_actor(self))


# --- Exam Serializers ---

class TopicSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Topic
        fields = ['id', 'code', 'title']


class ExamConfigSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    candidate_email = serializers.EmailField()
    candidate_name = serializers.CharField(required=False, allow_blank=True, default="")
    topic_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    question_count = serializers.IntegerField(min_value=1)
    duration_minutes = serializers.IntegerField(min_value=1)
    expiry_date = serializers.DateTimeField(required=False, allow_null=True, default=None)

    def validate_candidate_email(self, value):
        return value.strip().lower()

    def create(self, validated_data):
        return catalog.create_exam(validated_data, actor=_actor(self))


class ExamListSerializer(serializers.ModelSerializer):
    topics = TopicSummarySerializer(many=True, read_only=True)
    effective_status = serializers.CharField(read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'title', 'candidate_email', 'candidate_name', 'topics',
            'question_count', 'duration_minutes', 'expiry_date', 'access_code',
            'status', 'effective_status', 'score', 'started_at', 'completed_at', 'created_at',
        ]


class ExamDetailSerializer(ExamListSerializer):
    """Admin view: includes frozen questions with their answers, activity and candidate info."""
    questions = FrozenQuestionSerializer(many=True, read_only=True)
    logs = ActivityLogSerializer(many=True, read_only=True)

    class Meta(ExamListSerializer.Meta):
        fields = ExamListSerializer.Meta.fields + ['description', 'candidate_info', 'questions', 'logs', 'updated_at']
