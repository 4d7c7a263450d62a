"""
FILE: src/email/service.py
Email service — Resend API, clinic-branded templates
"""

import logging

import resend  # type: ignore

from src.email.config import email_settings
from src.email.schemas import (
    EmailResponse,
    OTPEmailData,
    PasswordChangedEmailData,
    WelcomeEmailData,
)
from src.shared.models import OTPPurpose

logger = logging.getLogger(__name__)

# HTML template helpers

_HEADER = """
<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><meta name="viewport" content="width=device-width,initial-scale=1.0"></head>
<body style="font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:600px;margin:0 auto;padding:20px;">
"""

_FOOTER = """
<div style="text-align:center;padding:20px;color:#999;font-size:12px;">
  <p>Clinic Portal</p>
  <p>This is an automated message, please do not reply.</p>
</div></body></html>
"""

_OTP_SUBJECTS = {
    OTPPurpose.LOGIN: ("Your login code", "Login Verification"),
    OTPPurpose.REGISTRATION: ("Complete your registration", "Verify Your Email"),
    OTPPurpose.EMAIL_VERIFICATION: ("Verify your email address", "Verify Your Email"),
    OTPPurpose.PASSWORD_RESET: ("Password reset code", "Password Reset"),
}


def _banner(title: str, color1: str = "#1565c0", color2: str = "#42a5f5") -> str:
    return f"""
<div style="background:linear-gradient(135deg,{color1} 0%,{color2} 100%);
     padding:30px;text-align:center;border-radius:10px 10px 0 0;">
  <h1 style="color:white;margin:0;font-size:26px;">🏥 {title}</h1>
</div>
<div style="background:#f9f9f9;padding:30px;border-radius:0 0 10px 10px;">
"""


def _close_body() -> str:
    return "</div>"


# Email Service
class EmailService:
    """Email service — all send methods return EmailResponse and never raise."""

    @staticmethod
    def _initialize_resend() -> bool:
        if not email_settings.RESEND_API_KEY:
            return False
        resend.api_key = email_settings.RESEND_API_KEY
        return True

    @staticmethod
    def _send(subject: str, to: str, html: str) -> EmailResponse:
        try:
            params = {
                "from": f"{email_settings.MAIL_FROM_NAME} <{email_settings.MAIL_FROM}>",
                "to": [to],
                "subject": subject,
                "html": html,
            }
            response = resend.Emails.send(params)  # type: ignore
            logger.info(f"Email sent to {to} | Resend ID: {response.get('id')}")
            return EmailResponse(success=True, message=f"Email sent to {to}", email_id=response.get("id"))
        except Exception as e:
            logger.error(f"Email send failed: {e}")
            return EmailResponse(success=False, message="Email failed", error=str(e))

    # OTP

    @staticmethod
    async def send_otp_email(data: OTPEmailData) -> EmailResponse:
        if not email_settings.SEND_EMAILS:
            logger.info(f"[DEV] OTP email ({data.purpose.value}) → {data.email}")
            return EmailResponse(success=True, message="Dev mode — email not sent")

        if not EmailService._initialize_resend():
            return EmailResponse(success=False, message="Email service not configured", error="Missing API key")

        subject, title = _OTP_SUBJECTS[data.purpose]
        html = _HEADER + _banner(title) + f"""
<p>Hello <strong>{data.full_name}</strong>,</p>
<p>Use the code below to continue. It expires at
   <strong>{data.expires_at.strftime('%I:%M %p UTC')}</strong>.</p>
<div style="text-align:center;margin:30px 0;">
  <span style="display:inline-block;background:white;border:2px dashed #1565c0;border-radius:8px;
        padding:15px 30px;font-size:32px;letter-spacing:8px;font-weight:bold;color:#1565c0;">
    {data.code}
  </span>
</div>
<div style="background:#fff8e1;border:1px solid #ffc107;border-radius:8px;padding:15px;margin:25px 0;">
  <p style="margin:0;color:#856404;">
    <strong>⚠️</strong> Never share this code. Clinic staff will never ask you for it.<br>
    If you did not request it, you can ignore this email.
  </p>
</div>
""" + _close_body() + _FOOTER

        return EmailService._send(f"{subject} — Clinic Portal", data.email, html)

    # Welcome

    @staticmethod
    async def send_welcome_email(data: WelcomeEmailData) -> EmailResponse:
        if not email_settings.SEND_EMAILS:
            logger.info(f"[DEV] Welcome email → {data.email} ({data.role})")
            return EmailResponse(success=True, message="Dev mode — email not sent")

        if not EmailService._initialize_resend():
            return EmailResponse(success=False, message="Email service not configured", error="Missing API key")

        clinic = data.clinic_name or "Clinic Portal"
        credentials = ""
        if data.temp_password:
            credentials = f"""
  <p><strong>Temporary Password:</strong>
     <code style="background:#f0f0f0;padding:5px 10px;border-radius:4px;">{data.temp_password}</code>
  </p>"""
        html = _HEADER + _banner(f"Welcome to {clinic}!") + f"""
<p>Dear <strong>{data.full_name}</strong>,</p>
<p>Your {data.role.replace('_', ' ')} account has been created.</p>
<div style="background:white;padding:20px;border-radius:8px;border-left:4px solid #1565c0;margin:25px 0;">
  <h3 style="margin-top:0;color:#1565c0;">Your Account</h3>
  <p><strong>Email:</strong> {data.email}</p>
  <p><strong>UHID:</strong> {data.uhid}</p>{credentials}
</div>
<div style="text-align:center;margin:30px 0;">
  <a href="{email_settings.LOGIN_URL}"
     style="background:#1565c0;color:white;padding:14px 30px;text-decoration:none;border-radius:6px;font-weight:bold;">
     Login to Your Account
  </a>
</div>
""" + _close_body() + _FOOTER

        return EmailService._send(f"Welcome to {clinic} — Your Account Details", data.email, html)

    # Password Changed

    @staticmethod
    async def send_password_changed_email(data: PasswordChangedEmailData) -> EmailResponse:
        if not email_settings.SEND_EMAILS:
            logger.info(f"[DEV] Password changed → {data.email}")
            return EmailResponse(success=True, message="Dev mode — email not sent")

        if not EmailService._initialize_resend():
            return EmailResponse(success=False, message="Email service not configured", error="Missing API key")

        html = _HEADER + _banner("Password Changed ✅", "#1a6b3e", "#27ae60") + f"""
<p>Hello <strong>{data.full_name}</strong>,</p>
<p>Your clinic account password was changed on
   <strong>{data.changed_at.strftime('%d %b %Y at %I:%M %p UTC')}</strong>.
</p>
<div style="background:#ffebee;border:1px solid #ef5350;border-radius:8px;padding:15px;margin:25px 0;">
  <p style="margin:0;color:#c62828;">
    <strong>🔒 Didn't make this change?</strong><br>
    Contact your clinic administrator immediately.
  </p>
</div>
<div style="text-align:center;margin:30px 0;">
  <a href="{email_settings.LOGIN_URL}"
     style="background:#1a6b3e;color:white;padding:14px 30px;text-decoration:none;border-radius:6px;font-weight:bold;">
     Login to Your Account
  </a>
</div>
""" + _close_body() + _FOOTER

        return EmailService._send("Password Changed — Clinic Portal", data.email, html)
