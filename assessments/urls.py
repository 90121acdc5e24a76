from django.urls import path
from .views import (
    VerifyAccessView,
    StartExamView,
    SubmitExamView,
    SendOtpView,
    VerifyOtpView,
    UploadFilesView,
)

urlpatterns = [
    # Candidate Exam Flow (access code is the credential)
    path('exams/verify/<str:access_code>/', VerifyAccessView.as_view(), name='exam-verify'),
    path('exams/<str:access_code>/start/', StartExamView.as_view(), name='exam-start'),
    path('exams/<str:access_code>/submit/', SubmitExamView.as_view(), name='exam-submit'),
    path('exams/<str:access_code>/otp/send/', SendOtpView.as_view(), name='exam-otp-send'),
    path('exams/<str:access_code>/otp/verify/', VerifyOtpView.as_view(), name='exam-otp-verify'),
    path('exams/<str:access_code>/upload/', UploadFilesView.as_view(), name='exam-upload'),
]
