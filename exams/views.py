import csv
import io
import logging

from django.db.models import Count
from django.shortcuts import get_object_or_404
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from cores.exceptions import ValidationError
from cores.models import AuditLog
from cores.pagination import PageLimitPagination
from . import catalog
from .models import Exam, Question, Topic
from .serializers import (
    BulkQuestionSerializer,
    ExamConfigSerializer,
    ExamDetailSerializer,
    ExamListSerializer,
    QuestionSerializer,
    TopicDetailSerializer,
    TopicSerializer,
    TopicWriteSerializer,
)

logger = logging.getLogger(__name__)


class TopicViewSet(viewsets.ModelViewSet):
    queryset = Topic.objects.annotate(questions_count=Count('questions')).order_by('-created_at', '-id')
    pagination_class = PageLimitPagination
    http_method_names = ['get', 'post', 'put', 'delete', 'head', 'options']

    # Enable search on title and code
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'code']

    def get_serializer_class(self):
        if self.action in ['create', 'update']:
            return TopicWriteSerializer
        if self.action == 'retrieve':
            return TopicDetailSerializer
        return TopicSerializer

    def _detail(self, topic):
        topic = self.get_queryset().prefetch_related('questions').get(pk=topic.pk)
        return TopicDetailSerializer(topic, context=self.get_serializer_context()).data

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        topic = serializer.save()
        return Response(self._detail(topic), status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        topic = self.get_object()
        serializer = self.get_serializer(topic, data=request.data)
        serializer.is_valid(raise_exception=True)
        topic = serializer.save()
        return Response(self._detail(topic))

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', instance, f"Deleted topic {instance.code}")
        instance.delete()


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.select_related('topic').order_by('-created_at', '-id')
    serializer_class = QuestionSerializer

    # Enable Search for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['text']

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'list':
            queryset = queryset.filter(topic_id=self.request.query_params.get('topic_id'))
        return queryset

    def list(self, request, *args, **kwargs):
        topic_id = request.query_params.get('topic_id')
        if not topic_id or not topic_id.isdigit():
            raise ValidationError({'topic_id': ["topic_id is required"]})
        return super().list(request, *args, **kwargs)

    @action(detail=False, methods=['post'], url_path='bulk')
    def bulk(self, request):
        """
        Insert many questions into one topic.
        Payload: { "topic_id": 1, "questions": [ {question_text, options, correct_index}, ... ] }
        """
        serializer = BulkQuestionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        topic = get_object_or_404(Topic, pk=serializer.validated_data['topic_id'])
        return self._bulk_insert(topic, serializer.validated_data['questions'])

    @action(detail=False, methods=['post'], url_path='bulk-upload', parser_classes=[MultiPartParser, FormParser])
    def bulk_upload(self, request):
        """
        Upload questions via CSV into the topic given by the `topic_id` form field.
        Expected CSV Header: question_text, options, correct_index
        `options` is pipe-separated; `correct_answer` (option text) may replace `correct_index`.
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            raise ValidationError({'file': ["No file uploaded"]})
        topic_id = request.data.get('topic_id')
        if not topic_id or not str(topic_id).isdigit():
            raise ValidationError({'topic_id': ["topic_id is required"]})
        topic = get_object_or_404(Topic, pk=topic_id)

        try:
            decoded_file = file_obj.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            raise ValidationError({'file': ["File must be UTF-8 encoded CSV"]})

        reader = csv.DictReader(io.StringIO(decoded_file))
        payloads = [self._row_to_payload(row) for row in reader]
        if not payloads:
            raise ValidationError({'file': ["CSV contains no rows"]})
        return self._bulk_insert(topic, payloads)

    @staticmethod
    def _row_to_payload(row):
        options = [opt.strip() for opt in (row.get('options') or '').split('|')]
        raw_index = (row.get('correct_index') or '').strip()
        if raw_index.isdigit():
            correct_index = int(raw_index)
        else:
            # Fall back to matching the correct answer text against the options
            correct_ans_text = (row.get('correct_answer') or '').strip().lower()
            lowered = [opt.lower() for opt in options]
            correct_index = lowered.index(correct_ans_text) if correct_ans_text in lowered else None
        return {
            'question_text': row.get('question_text') or '',
            'options': options,
            'correct_index': correct_index,
        }

    def _bulk_insert(self, topic, questions):
        created, errors = catalog.bulk_insert_questions(topic, questions)
        if not created:
            return Response(
                {"message": "No valid questions found to upload", "errors": errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        AuditLog.record(self.request.user, 'CREATE', topic, f"Bulk-added {len(created)} questions")
        logger.info(f"Bulk-added {len(created)} questions to topic {topic.code} ({len(errors)} rejected)")

        body = {"message": f"Successfully uploaded {len(created)} questions.", "created": len(created)}
        if errors:
            body["errors"] = errors
        return Response(body, status=status.HTTP_201_CREATED)

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', instance, f"Deleted question from topic {instance.topic.code}")
        instance.delete()


class ExamViewSet(mixins.ListModelMixin,
                  mixins.RetrieveModelMixin,
                  mixins.CreateModelMixin,
                  mixins.UpdateModelMixin,
                  viewsets.GenericViewSet):
    """Administrator view of exam configurations and their outcomes."""
    queryset = Exam.objects.prefetch_related('topics').order_by('-created_at', '-id')
    http_method_names = ['get', 'post', 'put', 'head', 'options']
    # Keeps /exams/<access_code>/... routes for candidates free
    lookup_value_regex = r'\d+'

    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'candidate_email', 'candidate_name']

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('questions', 'logs')
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def get_serializer_class(self):
        if self.action == 'list':
            return ExamListSerializer
        if self.action == 'retrieve':
            return ExamDetailSerializer
        return ExamConfigSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        exam = serializer.save()
        return Response(ExamDetailSerializer(exam).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        exam = catalog.update_exam(kwargs['pk'], serializer.validated_data, actor=request.user)
        return Response(ExamDetailSerializer(exam).data)
