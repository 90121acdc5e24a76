from rest_framework import serializers

from exams.models import Exam
from .models import ActivityLog, ExamQuestion


# --- Admin-side (answers visible) ---

class FrozenQuestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExamQuestion
        fields = [
            'id', 'position', 'source_question_id', 'origin_topic',
            'question_text', 'options', 'correct_index',
            'selected_option_index', 'is_correct',
        ]


class ActivityLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ActivityLog
        fields = ['action', 'timestamp', 'details']


# --- Candidate-side (never carries correct answers) ---

class CandidateExamSerializer(serializers.ModelSerializer):
    """What a candidate may see before starting."""
    status = serializers.CharField(source='effective_status', read_only=True)

    class Meta:
        model = Exam
        fields = ['title', 'description', 'duration_minutes', 'candidate_name', 'status', 'expiry_date']


class CandidateQuestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExamQuestion
        fields = ['id', 'question_text', 'options']


class StartExamSerializer(serializers.Serializer):
    candidate_name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    candidate_email = serializers.EmailField(required=False, allow_blank=True)
    candidate_phone = serializers.CharField(required=False, allow_blank=True, max_length=50)
    ip = serializers.IPAddressField(required=False, allow_blank=True)
    user_agent = serializers.CharField(required=False, allow_blank=True, max_length=500)


class SubmitExamSerializer(serializers.Serializer):
    # {"<question id>": <selected option index>}
    answers = serializers.DictField(required=False, default=dict)
    logs = serializers.JSONField(required=False, allow_null=True, default=None)


class OtpSendSerializer(serializers.Serializer):
    email = serializers.EmailField()


class OtpVerifySerializer(serializers.Serializer):
    email = serializers.EmailField(required=False)
    otp = serializers.CharField(trim_whitespace=False)
