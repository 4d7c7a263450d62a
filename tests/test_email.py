"""
FILE: tests/test_email.py
Email service tests for the Clinic API.
Tests service behaviour in both no-send mode and send mode with the
Resend client mocked.

Uses mock_email_settings to disable actual Resend API calls.
"""

import pytest
from datetime import datetime

from src.email.schemas import OTPEmailData, PasswordChangedEmailData, WelcomeEmailData
from src.email.service import EmailService
from src.shared.models import OTPPurpose


# ============================================================================
# MODULE-LEVEL FIXTURES
# ============================================================================

@pytest.fixture(name="otp_data")
def otp_data_fixture() -> OTPEmailData:
    return OTPEmailData(
        email="alice@sunrise.example.com",
        full_name="Dr. Alice Obi",
        code="042917",
        purpose=OTPPurpose.LOGIN,
        expires_at=datetime(2026, 1, 1, 12, 5, 0),
    )


@pytest.fixture(name="welcome_data")
def welcome_data_fixture() -> WelcomeEmailData:
    return WelcomeEmailData(
        email="nina@sunrise.example.com",
        full_name="Nina Okoro",
        role="head_nurse",
        uhid="NUR-001",
        clinic_name="Sunrise Clinic",
        temp_password="TempPass!123",
    )


@pytest.fixture(name="password_changed_data")
def password_changed_data_fixture() -> PasswordChangedEmailData:
    return PasswordChangedEmailData(
        email="alice@sunrise.example.com",
        full_name="Dr. Alice Obi",
        changed_at=datetime(2026, 1, 1, 12, 0, 0),
    )


@pytest.fixture(name="sent_emails")
def sent_emails_fixture(monkeypatch, mock_email_settings):
    """Turn sending on and capture what would go to Resend."""
    import resend

    captured = []

    def fake_send(params):
        captured.append(params)
        return {"id": f"email_{len(captured)}"}

    mock_email_settings.SEND_EMAILS = True
    monkeypatch.setattr(resend.Emails, "send", staticmethod(fake_send))
    return captured


# ============================================================================
# NO-SEND MODE
# ============================================================================

@pytest.mark.email
class TestEmailsDisabled:
    """SEND_EMAILS=False: every send is a logged no-op that reports success."""

    @pytest.mark.asyncio
    async def test_otp_email_returns_success(self, otp_data: OTPEmailData, mock_email_settings):
        result = await EmailService.send_otp_email(otp_data)

        assert result.success is True
        assert result.email_id is None

    @pytest.mark.asyncio
    async def test_welcome_email_returns_success(self, welcome_data: WelcomeEmailData, mock_email_settings):
        result = await EmailService.send_welcome_email(welcome_data)

        assert result.success is True

    @pytest.mark.asyncio
    async def test_password_changed_email_returns_success(
        self, password_changed_data: PasswordChangedEmailData, mock_email_settings
    ):
        result = await EmailService.send_password_changed_email(password_changed_data)

        assert result.success is True


# ============================================================================
# SEND MODE (Resend mocked)
# ============================================================================

@pytest.mark.email
class TestEmailsEnabled:
    """SEND_EMAILS=True with the Resend client replaced."""

    @pytest.mark.asyncio
    async def test_otp_email_carries_code_and_subject(self, otp_data: OTPEmailData, sent_emails):
        result = await EmailService.send_otp_email(otp_data)

        assert result.success is True
        assert result.email_id == "email_1"
        params = sent_emails[0]
        assert params["to"] == ["alice@sunrise.example.com"]
        assert params["subject"].startswith("Your login code")
        assert "042917" in params["html"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "purpose, subject",
        [
            (OTPPurpose.PASSWORD_RESET, "Password reset code"),
            (OTPPurpose.EMAIL_VERIFICATION, "Verify your email address"),
            (OTPPurpose.REGISTRATION, "Complete your registration"),
        ],
    )
    async def test_subject_follows_purpose(self, otp_data: OTPEmailData, sent_emails, purpose, subject):
        await EmailService.send_otp_email(otp_data.model_copy(update={"purpose": purpose}))

        assert sent_emails[0]["subject"].startswith(subject)

    @pytest.mark.asyncio
    async def test_welcome_email_includes_temp_password(self, welcome_data: WelcomeEmailData, sent_emails):
        await EmailService.send_welcome_email(welcome_data)

        html = sent_emails[0]["html"]
        assert "TempPass!123" in html
        assert "NUR-001" in html
        assert "head nurse" in html

    @pytest.mark.asyncio
    async def test_welcome_email_without_temp_password(self, welcome_data: WelcomeEmailData, sent_emails):
        await EmailService.send_welcome_email(welcome_data.model_copy(update={"temp_password": None}))

        assert "Temporary Password" not in sent_emails[0]["html"]

    @pytest.mark.asyncio
    async def test_transport_failure_is_reported_not_raised(
        self, otp_data: OTPEmailData, monkeypatch, mock_email_settings
    ):
        import resend

        def broken_send(params):
            raise RuntimeError("resend unavailable")

        mock_email_settings.SEND_EMAILS = True
        monkeypatch.setattr(resend.Emails, "send", staticmethod(broken_send))

        result = await EmailService.send_otp_email(otp_data)

        assert result.success is False
        assert "resend unavailable" in result.error

    @pytest.mark.asyncio
    async def test_missing_api_key_is_reported(self, otp_data: OTPEmailData, mock_email_settings):
        mock_email_settings.SEND_EMAILS = True
        mock_email_settings.RESEND_API_KEY = None

        result = await EmailService.send_otp_email(otp_data)

        assert result.success is False
        assert result.error == "Missing API key"


# ============================================================================
# SCHEMAS
# ============================================================================

@pytest.mark.email
@pytest.mark.unit
class TestEmailSchemas:
    """Pydantic email schemas"""

    def test_otp_data_rejects_invalid_email(self):
        with pytest.raises(ValueError):
            OTPEmailData(
                email="not-an-email",
                full_name="X",
                code="123456",
                purpose=OTPPurpose.LOGIN,
                expires_at=datetime(2026, 1, 1),
            )

    def test_welcome_data_temp_password_is_optional(self):
        data = WelcomeEmailData(email="a@sunrise.example.com", full_name="A", role="doctor", uhid="DOC-1")

        assert data.temp_password is None
