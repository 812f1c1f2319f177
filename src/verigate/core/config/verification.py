"""
Verification code settings.
"""
from pydantic import Field
from pydantic_settings import BaseSettings


class VerificationSettings(BaseSettings):
    """
    Defines the verification code lifecycle and the generation quota.

    Security Note:
        - OTP_LENGTH below 6 digits makes online guessing noticeably cheaper;
          keep OTP_MAX_VERIFICATION_ATTEMPTS low when shortening codes.
        - The generation quota (OTP_RATE_LIMIT_ATTEMPTS per OTP_RATE_LIMIT_WINDOW_MS)
          also applies to resend, so resend cannot be used to bypass it.
    """
    OTP_LENGTH: int = Field(default=6, ge=4, le=10)
    OTP_EXPIRATION_MINUTES: int = Field(default=30, ge=1)
    OTP_MAX_VERIFICATION_ATTEMPTS: int = Field(default=5, ge=1)
    OTP_RATE_LIMIT_ATTEMPTS: int = Field(default=3, ge=1)
    OTP_RATE_LIMIT_WINDOW_MS: int = Field(default=3_600_000, ge=1000)
    OTP_RATE_LIMIT_NAMESPACE: str = "otp_rate_limit"
    OTP_ATTEMPT_CAS_RETRIES: int = Field(default=5, ge=1)

    METRICS_FLUSH_INTERVAL_SECONDS: float = Field(default=300.0, gt=0)
    METRICS_MAX_BUFFER_SIZE: int = Field(default=1000, ge=1)
    METRICS_HIGH_LATENCY_MS: float = Field(default=5000.0, gt=0)

    @property
    def otp_ttl_seconds(self) -> int:
        return self.OTP_EXPIRATION_MINUTES * 60
