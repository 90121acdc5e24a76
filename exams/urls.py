from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ExamViewSet, QuestionViewSet, TopicViewSet

router = DefaultRouter()
router.register(r'topics', TopicViewSet, basename='topics')
router.register(r'questions', QuestionViewSet, basename='questions')
router.register(r'exams', ExamViewSet, basename='exams')

urlpatterns = [
    path('', include(router.urls)),
]
