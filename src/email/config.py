"""
FILE: src/email/config.py
Mail transport settings (Resend)
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    RESEND_API_KEY: Optional[str] = None
    SEND_EMAILS: bool = False
    MAIL_FROM: str = "no-reply@clinic.local"
    MAIL_FROM_NAME: str = "Clinic Portal"
    LOGIN_URL: str = "http://localhost:5173/login"


email_settings = EmailSettings()
