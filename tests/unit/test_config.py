"""Unit tests for settings loading."""

import os

import pytest

from vetverify.config import (
    ConfigurationError,
    DocumentRequirement,
    Settings,
    load_settings,
    DEFAULT_POLICY_FILE,
)
from vetverify.models import UserRole, DocumentType

ENV_VARS = [
    "VETVERIFY_BACKEND",
    "VETVERIFY_DATA_DIR",
    "VETVERIFY_PAGE_SIZE",
    "VETVERIFY_BATCH_WORKERS",
    "VETVERIFY_LOG_LEVEL",
    "VETVERIFY_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    # load_dotenv writes straight to os.environ
    for name in ENV_VARS:
        os.environ.pop(name, None)


@pytest.fixture
def no_env_file(tmp_path):
    # load_dotenv() without a path would pick up a developer's .env
    path = tmp_path / "empty.env"
    path.write_text("")
    return path


class TestDocumentRequirement:

    def test_all_required_by_default(self):
        req = DocumentRequirement([DocumentType.LICENSE, DocumentType.DEGREE])
        assert req.minimum_distinct == 2
        assert req.missing({DocumentType.LICENSE}) == [DocumentType.DEGREE]
        assert req.missing({DocumentType.LICENSE, DocumentType.DEGREE}) == []

    def test_minimum(self):
        req = DocumentRequirement([DocumentType.LICENSE, DocumentType.DEGREE], minimum=1)
        assert req.missing({DocumentType.DEGREE}) == []


class TestLoadSettings:

    def test_bundled_policy(self, no_env_file):
        settings = load_settings(env_file=no_env_file)

        assert settings.page_size == 10
        assert settings.requirement_for(UserRole.VENDOR).required == [
            DocumentType.BUSINESS_LICENSE, DocumentType.GST_CERTIFICATE,
        ]
        assert "Invalid License Number" in settings.rejection_reasons
        assert settings.reminder_window_days == 30

    def test_bundled_policy_ships_with_package(self):
        assert DEFAULT_POLICY_FILE.exists()

    def test_custom_policy(self, tmp_path, no_env_file):
        policy = tmp_path / "policy.yaml"
        policy.write_text(
            "documents:\n"
            "  veterinarian:\n"
            "    required: [license, degree, experience_certificate]\n"
            "    minimum: 2\n"
            "rejection_reasons: [Blurry scan]\n"
            "review_queue:\n"
            "  page_size: 25\n"
        )
        settings = load_settings(policy, env_file=no_env_file)

        req = settings.requirement_for(UserRole.VETERINARIAN)
        assert req.minimum_distinct == 2
        assert settings.requirement_for(UserRole.VENDOR) is None
        assert settings.rejection_reasons == ["Blurry scan"]
        assert settings.page_size == 25

    def test_env_overrides(self, monkeypatch, tmp_path, no_env_file):
        monkeypatch.setenv("VETVERIFY_BACKEND", "memory")
        monkeypatch.setenv("VETVERIFY_DATA_DIR", str(tmp_path / "data"))
        monkeypatch.setenv("VETVERIFY_PAGE_SIZE", "5")
        monkeypatch.setenv("VETVERIFY_LOG_LEVEL", "debug")

        settings = load_settings(env_file=no_env_file)

        assert settings.backend == "memory"
        assert settings.data_dir == tmp_path / "data"
        assert settings.page_size == 5
        assert settings.log_level == "DEBUG"

    def test_env_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("VETVERIFY_BATCH_WORKERS=7\n")
        assert load_settings(env_file=env_file).batch_workers == 7

    def test_config_path_from_env(self, monkeypatch, tmp_path, no_env_file):
        policy = tmp_path / "p.yaml"
        policy.write_text("reminders:\n  expiry_window_days: 14\n")
        monkeypatch.setenv("VETVERIFY_CONFIG", str(policy))

        assert load_settings(env_file=no_env_file).reminder_window_days == 14

    def test_missing_policy(self, tmp_path, no_env_file):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "nope.yaml", env_file=no_env_file)

    def test_bad_document_type(self, tmp_path, no_env_file):
        policy = tmp_path / "p.yaml"
        policy.write_text("documents:\n  vendor:\n    required: [passport]\n")
        with pytest.raises(ConfigurationError, match="vendor"):
            load_settings(policy, env_file=no_env_file)

    def test_page_size_must_be_positive(self, monkeypatch, no_env_file):
        monkeypatch.setenv("VETVERIFY_PAGE_SIZE", "0")
        with pytest.raises(ConfigurationError):
            load_settings(env_file=no_env_file)

    def test_known_reason_is_case_insensitive(self):
        assert Settings().is_known_reason("invalid license number")
        assert not Settings().is_known_reason("Bad vibes")
