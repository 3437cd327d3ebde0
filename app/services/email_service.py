"""
Email Service - transactional mail over SMTP.

Port 465 uses implicit TLS (SMTP_SSL); any other port upgrades with
STARTTLS. When SMTP is not configured, sends are logged and skipped.
"""

import smtplib
from email.message import EmailMessage
from typing import Optional

from app.core.config import get_settings
from app.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)

OTP_SUBJECTS = {
    "signup": "Welcome to Gradii - Verify your email",
    "signin": "Your Gradii access code",
    "candidate_access": "Your interview access code",
}


# ============================================================
# TEMPLATES
# ============================================================

def render_otp_email(code: str, purpose: str, candidate_name: str = None) -> tuple:
    subject = OTP_SUBJECTS.get(purpose, "Your Gradii verification code")
    greeting = f"Hi {candidate_name}," if candidate_name else "Hi,"
    text_body = (
        f"{greeting}\n\n"
        f"Your verification code is: {code}\n\n"
        f"The code expires in 5 minutes. If you did not request it, you can ignore this email.\n\n"
        f"- The Gradii team"
    )
    html_body = (
        f"<p>{greeting}</p>"
        f"<p>Your verification code is:</p>"
        f"<p style=\"font-size:28px;font-weight:bold;letter-spacing:6px\">{code}</p>"
        f"<p>The code expires in 5 minutes. If you did not request it, you can ignore this email.</p>"
    )
    return subject, text_body, html_body


def render_interview_invitation(candidate_name: str, job_title: str, company_name: str,
                                interview_type: str, interview_link: str, expires_at: str,
                                time_limit: Optional[int] = None) -> tuple:
    subject = f"Interview Invitation: {job_title} at {company_name}"
    duration = f"{time_limit} minutes" if time_limit else "untimed"
    text_body = (
        f"Hi {candidate_name},\n\n"
        f"{company_name} has invited you to a {interview_type} interview for the {job_title} role.\n\n"
        f"Duration: {duration}\n"
        f"Link: {interview_link}\n"
        f"The link expires on {expires_at}.\n\n"
        f"Good luck!\n- The Gradii team"
    )
    html_body = (
        f"<p>Hi {candidate_name},</p>"
        f"<p><strong>{company_name}</strong> has invited you to a <strong>{interview_type}</strong> "
        f"interview for the <strong>{job_title}</strong> role.</p>"
        f"<p>Duration: {duration}</p>"
        f"<p><a href=\"{interview_link}\">Start your interview</a></p>"
        f"<p>The link expires on {expires_at}.</p>"
    )
    return subject, text_body, html_body


def render_team_invite(first_name: str, company_name: str, inviter_name: str, login_url: str) -> tuple:
    subject = f"You've been added to {company_name} on Gradii"
    text_body = (
        f"Hi {first_name},\n\n"
        f"{inviter_name} added you to the {company_name} workspace on Gradii.\n"
        f"Sign in at {login_url} with this email address.\n\n"
        f"- The Gradii team"
    )
    html_body = (
        f"<p>Hi {first_name},</p>"
        f"<p>{inviter_name} added you to the <strong>{company_name}</strong> workspace on Gradii.</p>"
        f"<p><a href=\"{login_url}\">Sign in</a> with this email address.</p>"
    )
    return subject, text_body, html_body


# ============================================================
# SENDER
# ============================================================

class EmailService:

    def __init__(self):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.smtp_from

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    def send(self, to: str, subject: str, text_body: str, html_body: str = None) -> bool:
        """Send one message. Returns False instead of raising on any failure."""
        if not self.is_configured:
            logger.warning(f"SMTP not configured, skipping email to {to}: {subject}")
            return False

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        message.set_content(text_body)
        if html_body:
            message.add_alternative(html_body, subtype="html")

        try:
            if self.port == 465:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=30) as server:
                    server.login(self.user, self.password)
                    server.send_message(message)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                    server.starttls()
                    server.login(self.user, self.password)
                    server.send_message(message)
            logger.info(f"Email sent to {to}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

    def send_otp(self, to: str, code: str, purpose: str, candidate_name: str = None) -> bool:
        return self.send(to, *render_otp_email(code, purpose, candidate_name))

    def send_interview_invitation(self, to: str, **details) -> bool:
        return self.send(to, *render_interview_invitation(**details))

    def send_team_invite(self, to: str, **details) -> bool:
        return self.send(to, *render_team_invite(**details))


def get_email_service() -> EmailService:
    return EmailService()
