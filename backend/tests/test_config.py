"""
Tests for environment-driven settings.
"""

from typing_assessment.config import Settings


def test_defaults():
    settings = Settings()
    assert settings.submission_max_attempts == 2
    assert settings.tick_interval_seconds == 1.0
    assert settings.completed_retention_seconds == 300.0
    assert "http://localhost:5173" in settings.cors_origins


def test_from_env(monkeypatch):
    monkeypatch.setenv("GRADING_API_URL", "https://hr.example.com/api/")
    monkeypatch.setenv("SUBMISSION_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("SUBMISSION_BACKOFF_SECONDS", "0.25")
    monkeypatch.setenv("COMPLETED_RETENTION_SECONDS", "30")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("CORS_ORIGINS", "https://hr.example.com, https://admin.example.com")

    settings = Settings.from_env()

    assert settings.grading_api_url == "https://hr.example.com/api"
    assert settings.submission_max_attempts == 1
    assert settings.submission_backoff_seconds == 0.25
    assert settings.completed_retention_seconds == 30.0
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("https://hr.example.com", "https://admin.example.com")
