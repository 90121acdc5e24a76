from django.contrib import admin

from .models import Topic, Question, Exam


@admin.register(Topic)
class TopicAdmin(admin.ModelAdmin):
    list_display = ('code', 'title', 'level', 'created_at')
    search_fields = ('code', 'title')


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ('id', 'topic', 'text', 'correct_index')
    list_filter = ('topic',)


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ('title', 'candidate_email', 'status', 'score', 'created_at')
    list_filter = ('status',)
    readonly_fields = ('access_code', 'started_at', 'completed_at', 'score', 'otp_code', 'otp_expires_at')
