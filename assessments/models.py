# assessments/models.py
from django.db import models
from django.utils import timezone

from exams.models import Exam, Topic


class ExamQuestion(models.Model):
    """
    Frozen copy of a catalog question, written once when the exam starts.
    Holds values, not references, so catalog edits never reach a live or
    finished attempt.
    """
    exam = models.ForeignKey(Exam, related_name='questions', on_delete=models.CASCADE)
    position = models.PositiveIntegerField()

    # Catalog row this was copied from; plain integer so deleting the row is harmless
    source_question_id = models.PositiveBigIntegerField(null=True, blank=True)
    origin_topic = models.ForeignKey(Topic, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')

    question_text = models.TextField()
    options = models.JSONField(default=list)
    correct_index = models.PositiveSmallIntegerField()

    # Filled in by grading
    selected_option_index = models.PositiveSmallIntegerField(null=True, blank=True)
    is_correct = models.BooleanField(null=True)

    class Meta:
        ordering = ['position']
        unique_together = ('exam', 'position')

    def __str__(self):
        return f"{self.exam_id}#{self.position} {self.question_text[:40]}"


class ActivityLog(models.Model):
    """Candidate activity (tab switches etc.) as reported by the client. Untrusted text."""
    exam = models.ForeignKey(Exam, related_name='logs', on_delete=models.CASCADE)
    action = models.CharField(max_length=100)  # e.g. "tab_hidden", "tab_visible"
    timestamp = models.DateTimeField(default=timezone.now)
    details = models.TextField(blank=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.exam_id} {self.action} @ {self.timestamp}"
