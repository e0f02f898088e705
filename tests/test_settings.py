"""
Tests for configuration loading.
"""

import pytest

from finvoice.config import (
    AppSettings,
    FirebaseSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture
def env_dir(tmp_path, monkeypatch):
    """Run from an empty directory with no service variables set."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "GEMINI_API_KEY",
        "FIREBASE_PROJECT_ID",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
        "REMOTE_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestDotEnv:
    """Every settings class reads the same .env file."""

    def test_service_settings_read_dotenv(self, env_dir):
        credentials = env_dir / "service-account.json"
        credentials.write_text("{}")
        (env_dir / ".env").write_text(
            "GEMINI_API_KEY=test-key\n"
            "FIREBASE_PROJECT_ID=finvoice-test\n"
            f"GOOGLE_SHEETS_CREDENTIALS_PATH={credentials}\n"
            "GOOGLE_SHEETS_SPREADSHEET_ID=sheet-123\n"
            "REMOTE_TIMEOUT_SECONDS=4\n"
        )

        assert GeminiSettings().api_key == "test-key"
        assert FirebaseSettings().project_id == "finvoice-test"
        assert GoogleSheetsSettings().spreadsheet_id == "sheet-123"
        assert AppSettings().remote_timeout_seconds == 4.0

    def test_missing_services_are_reported(self, env_dir):
        status = validate_all_settings()

        assert status["gemini"] is False
        assert status["firebase"] is False
        assert status["google_sheets"] is False
        assert status["app"] is True
        assert "gemini_error" in status

    def test_sheet_names_per_collection(self, env_dir):
        settings = GoogleSheetsSettings(
            credentials_path=str(env_dir / "missing.json"),
            spreadsheet_id="sheet-123",
        )
        assert settings.sheet_name_for("expenses") == "expenses"
        assert settings.sheet_name_for("profiles") == "profiles"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
