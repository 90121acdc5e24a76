from rest_framework import permissions, status, views
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from . import engine
from .serializers import (
    CandidateExamSerializer,
    CandidateQuestionSerializer,
    OtpSendSerializer,
    OtpVerifySerializer,
    StartExamSerializer,
    SubmitExamSerializer,
)


class CandidateView(views.APIView):
    """Candidate endpoints: no account, the access code in the URL is the credential."""
    authentication_classes = []
    permission_classes = [permissions.AllowAny]


class VerifyAccessView(CandidateView):
    def get(self, request, access_code):
        exam = engine.verify_access(access_code)
        return Response(CandidateExamSerializer(exam).data)


class StartExamView(CandidateView):
    """
    Candidate starts an exam.
    Freezes a random question set and returns it WITHOUT correct answers.
    """

    def post(self, request, access_code):
        serializer = StartExamSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        candidate = {
            'name': data.get('candidate_name'),
            'email': data.get('candidate_email'),
            'phone': data.get('candidate_phone'),
            'ip': data.get('ip') or request.META.get('REMOTE_ADDR'),
            'user_agent': data.get('user_agent') or request.META.get('HTTP_USER_AGENT'),
        }
        exam, questions = engine.start_exam(access_code, candidate)

        return Response({
            "exam": {
                "title": exam.title,
                "duration_minutes": exam.duration_minutes,
                "candidate_name": exam.candidate_name,
                "started_at": exam.started_at,
            },
            "questions": CandidateQuestionSerializer(questions, many=True).data,
        })


class SubmitExamView(CandidateView):
    """
    Candidate submits answers.
    Payload: { "answers": { "<question id>": <option index> }, "logs": [ {action, timestamp, details} ] }
    """

    def post(self, request, access_code):
        serializer = SubmitExamSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = engine.submit_exam(
            access_code,
            serializer.validated_data['answers'],
            serializer.validated_data.get('logs'),
        )
        return Response({"message": "Exam submitted successfully", **result})


class SendOtpView(CandidateView):
    def post(self, request, access_code):
        serializer = OtpSendSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        engine.send_otp(access_code, serializer.validated_data['email'])
        return Response({"message": "OTP sent successfully"})


class VerifyOtpView(CandidateView):
    def post(self, request, access_code):
        serializer = OtpVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        engine.verify_otp(access_code, serializer.validated_data['otp'])
        return Response({"message": "OTP verified successfully"})


class UploadFilesView(CandidateView):
    """Multipart fields: profile_pic (1), resume (1), documents (several)."""
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, access_code):
        paths = engine.upload_candidate_files(
            access_code,
            profile_pic=request.FILES.get('profile_pic'),
            resume=request.FILES.get('resume'),
            documents=request.FILES.getlist('documents'),
        )
        return Response({"message": "Files uploaded successfully", "paths": paths}, status=status.HTTP_200_OK)
