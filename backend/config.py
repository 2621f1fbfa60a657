"""
Configuration management for the Social Bite order tracking backend.

Loads settings from .env via pydantic-settings.

Notes:
    - The simulated delivery timings (stage length, ETA journey) are demo
      constants, exposed here so deployments can tune them.
    - validate_production_settings() enforces strict CORS and a JWT secret in production
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/social_bite.db"

    # ── Order tracking simulation ───────────────────────────────────
    stage_advance_minutes: int = 8        # one status step per N elapsed minutes
    eta_total_minutes: int = 45           # assumed confirmed -> delivered journey
    eta_phase_minutes: int = 15           # length of each of the three phases
    eta_floor_minutes: List[int] = [5, 5, 2]  # minimum ETA per active status
    tracking_refresh_seconds: int = 30    # server-side auto-refresh interval

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    public_base_url: str = "http://localhost:8000/"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "social-bite-api"
    jwt_access_ttl_minutes: int = 60

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5500,http://127.0.0.1:5500"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.stage_advance_minutes <= 0 or self.eta_phase_minutes <= 0:
            raise ValueError("STAGE_ADVANCE_MINUTES and ETA_PHASE_MINUTES must be positive.")
        if len(self.eta_floor_minutes) != 3:
            raise ValueError(
                "ETA_FLOOR_MINUTES must list exactly three values "
                "(confirmed, preparing, out_for_delivery)."
            )

        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign access tokens for user authentication."
                )
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.jwt_secret:
                warnings.append("JWT_SECRET is empty (only X-User-Id header auth will work)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"{w}")


# Global settings instance
settings = Settings()
