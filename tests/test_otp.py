import smtplib
from datetime import timedelta
from unittest import mock

import pytest

from cores.mail import send_email
from exams.models import Exam

pytestmark = pytest.mark.django_db


def send(client, exam, email="candidate@example.com"):
    return client.post(f"/api/exams/{exam.access_code}/otp/send/", {"email": email}, format="json")


def verify(client, exam, otp):
    return client.post(f"/api/exams/{exam.access_code}/otp/verify/", {"otp": otp}, format="json")


def stored_otp(exam):
    return Exam.objects.values_list("otp_code", "otp_expires_at").get(pk=exam.pk)


def wrong_code(code):
    return "000000" if code != "000000" else "111111"


@pytest.fixture
def exam(make_topic, make_exam):
    return make_exam([make_topic()])


class TestSendOtp:
    def test_sends_six_digit_code_by_email(self, api_client, exam, mailoutbox):
        response = send(api_client, exam)

        assert response.status_code == 200
        code, expires_at = stored_otp(exam)
        assert len(code) == 6 and code.isdigit()
        assert expires_at is not None
        assert len(mailoutbox) == 1
        assert mailoutbox[0].to == ["candidate@example.com"]
        assert code in mailoutbox[0].body

    def test_email_is_required(self, api_client, exam):
        response = api_client.post(f"/api/exams/{exam.access_code}/otp/send/", {}, format="json")
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION"

    def test_unknown_exam_is_404(self, api_client):
        response = api_client.post("/api/exams/nope/otp/send/", {"email": "a@b.co"}, format="json")
        assert response.status_code == 404

    def test_resend_overwrites_previous_code(self, api_client, exam):
        send(api_client, exam)
        first, _ = stored_otp(exam)

        with mock.patch("assessments.engine.generate_otp", return_value="654321" if first != "654321" else "123456"):
            send(api_client, exam)
        second, _ = stored_otp(exam)

        assert second != first
        assert verify(api_client, exam, first).json()["code"] == "INVALID_OTP"
        assert verify(api_client, exam, second).status_code == 200

    def test_delivery_failure_keeps_code(self, api_client, exam):
        with mock.patch("cores.mail.send_mail", side_effect=smtplib.SMTPException("relay down")):
            response = send(api_client, exam)

        assert response.status_code == 200
        code, _ = stored_otp(exam)
        assert verify(api_client, exam, code).status_code == 200


class TestVerifyOtp:
    def test_without_code_sent(self, api_client, exam):
        response = verify(api_client, exam, "123456")
        assert response.status_code == 400
        assert response.json()["code"] == "NO_OTP"

    def test_correct_code_just_before_expiry(self, api_client, exam):
        send(api_client, exam)
        code, expires_at = stored_otp(exam)

        with mock.patch("django.utils.timezone.now", return_value=expires_at - timedelta(seconds=1)):
            response = verify(api_client, exam, code)

        assert response.status_code == 200

    def test_correct_code_after_expiry(self, api_client, exam):
        send(api_client, exam)
        code, expires_at = stored_otp(exam)

        with mock.patch("django.utils.timezone.now", return_value=expires_at + timedelta(seconds=1)):
            response = verify(api_client, exam, code)

        assert response.status_code == 400
        assert response.json()["code"] == "EXPIRED"

    def test_ttl_is_ten_minutes(self, api_client, exam):
        issued_at = Exam.objects.get(pk=exam.pk).created_at + timedelta(hours=1)
        with mock.patch("django.utils.timezone.now", return_value=issued_at):
            send(api_client, exam)
        code, expires_at = stored_otp(exam)

        assert expires_at - issued_at == timedelta(minutes=10)
        with mock.patch("django.utils.timezone.now", return_value=issued_at + timedelta(minutes=9, seconds=59)):
            assert verify(api_client, exam, code).status_code == 200
        with mock.patch("django.utils.timezone.now", return_value=issued_at + timedelta(minutes=10, seconds=1)):
            assert verify(api_client, exam, code).json()["code"] == "EXPIRED"

    def test_wrong_code_is_invalid_before_and_after_expiry(self, api_client, exam):
        send(api_client, exam)
        code, expires_at = stored_otp(exam)

        assert verify(api_client, exam, wrong_code(code)).json()["code"] == "INVALID_OTP"
        with mock.patch("django.utils.timezone.now", return_value=expires_at + timedelta(minutes=5)):
            assert verify(api_client, exam, wrong_code(code)).json()["code"] == "INVALID_OTP"

    def test_code_with_padding_is_not_accepted(self, api_client, exam):
        send(api_client, exam)
        code, _ = stored_otp(exam)

        response = verify(api_client, exam, f" {code}")

        assert response.json()["code"] == "INVALID_OTP"

    def test_code_can_be_replayed_until_expiry(self, api_client, exam):
        send(api_client, exam)
        code, _ = stored_otp(exam)

        assert verify(api_client, exam, code).status_code == 200
        assert verify(api_client, exam, code).status_code == 200

    def test_single_use_clears_code(self, api_client, exam, settings):
        settings.OTP_SINGLE_USE = True
        send(api_client, exam)
        code, _ = stored_otp(exam)

        assert verify(api_client, exam, code).status_code == 200
        assert verify(api_client, exam, code).json()["code"] == "NO_OTP"


class TestSendEmail:
    def test_reports_success(self, mailoutbox):
        assert send_email("x@example.com", "Hi", "Body") is True
        assert mailoutbox[0].subject == "Hi"

    def test_reports_failure_instead_of_raising(self):
        with mock.patch("cores.mail.send_mail", side_effect=smtplib.SMTPException("boom")):
            assert send_email("x@example.com", "Hi", "Body") is False
