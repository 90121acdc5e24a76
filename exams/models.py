# clue_platform/exams/models.py
import secrets

from django.conf import settings
from django.db import models
from django.utils import timezone


class Topic(models.Model):
    class Level(models.TextChoices):
        BEGINNER = "beginner", "Beginner"
        INTERMEDIATE = "intermediate", "Intermediate"
        ADVANCED = "advanced", "Advanced"

    code = models.CharField(max_length=50, unique=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    level = models.CharField(max_length=20, choices=Level.choices, default=Level.BEGINNER)

    # Exam ids (as strings) this topic has been assigned to
    assigned_exams = models.JSONField(default=list, blank=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='topics')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.title}"


class Question(models.Model):
    """Reusable catalog question. Exams copy it by value when they start."""
    OPTION_COUNT = 4

    topic = models.ForeignKey(Topic, related_name='questions', on_delete=models.CASCADE, db_index=True)
    text = models.TextField()
    options = models.JSONField(default=list)  # exactly 4 non-empty strings
    correct_index = models.PositiveSmallIntegerField()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.text[:50]}..."


def generate_access_code():
    return secrets.token_hex(16)


class Exam(models.Model):
    class Status(models.TextChoices):
        WAITING = "waiting", "Waiting"
        IN_PROGRESS = "in_progress", "In progress"
        ATTENDED = "attended", "Attended"

    # Never stored; reported by effective_status once expiry_date has passed
    EXPIRED = "expired"

    # --- Configuration ---
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    candidate_email = models.EmailField()
    candidate_name = models.CharField(max_length=255, blank=True)

    topics = models.ManyToManyField(Topic, related_name='exams')
    question_count = models.PositiveIntegerField()
    duration_minutes = models.PositiveIntegerField()
    expiry_date = models.DateTimeField(null=True, blank=True)

    # Capability token for the candidate-facing flow
    access_code = models.CharField(max_length=64, unique=True, default=generate_access_code, editable=False)

    # --- State ---
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.WAITING)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    score = models.PositiveSmallIntegerField(null=True, blank=True)

    # --- OTP (single slot, overwritten on every send) ---
    otp_code = models.CharField(max_length=6, blank=True)
    otp_expires_at = models.DateTimeField(null=True, blank=True)

    # name, email, phone, ip, user_agent, profile_pic, resume, documents
    candidate_info = models.JSONField(default=dict, blank=True)

    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='exams')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.candidate_email})"

    def is_expired(self, now=None):
        if not self.expiry_date:
            return False
        return (now or timezone.now()) > self.expiry_date

    @property
    def effective_status(self):
        if self.status != self.Status.ATTENDED and self.is_expired():
            return self.EXPIRED
        return self.status
