# cores/mail.py
import logging
import smtplib

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def send_email(to, subject, body):
    """
    Deliver a plain-text email. Returns True on success.
    Failures are logged and reported as False; callers decide whether to care.
    """
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [to], fail_silently=False)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Email delivery to {to} failed: {e}")
        return False
    return True
