import pytest
from pydantic import ValidationError

from image_api.config.settings import Settings


class TestSettingsDefaults:
    def test_default_app_env(self) -> None:
        s = Settings()
        assert s.app_env == "dev"

    def test_default_db_port(self) -> None:
        s = Settings()
        assert s.db_port == 5432

    def test_default_max_job_attempts(self) -> None:
        s = Settings()
        assert s.max_job_attempts == 3

    def test_default_job_timeout(self) -> None:
        s = Settings()
        assert s.job_timeout_seconds == 30

    def test_default_extractor_timeout(self) -> None:
        s = Settings()
        assert s.extractor_timeout_seconds == 5

    def test_default_backends(self) -> None:
        s = Settings()
        assert s.record_store_backend == "postgres"
        assert s.queue_backend == "postgres"
        assert s.blob_store_backend == "local"

    def test_default_trust_list_is_empty(self) -> None:
        s = Settings()
        assert s.c2pa_trusted_issuers == []


class TestSettingsFromEnv:
    def test_loads_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        s = Settings()
        assert s.log_level == "DEBUG"

    def test_loads_max_job_attempts(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_JOB_ATTEMPTS", "5")
        s = Settings()
        assert s.max_job_attempts == 5

    def test_loads_queue_backend(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("QUEUE_BACKEND", "memory")
        s = Settings()
        assert s.queue_backend == "memory"

    def test_loads_trusted_issuers_as_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("C2PA_TRUSTED_ISSUERS", '["Example CA", "Other CA"]')
        s = Settings()
        assert s.c2pa_trusted_issuers == ["Example CA", "Other CA"]


class TestSettingsValidation:
    def test_invalid_db_port_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_PORT", "not_a_number")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_job_timeout_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JOB_TIMEOUT_SECONDS", "soon")
        with pytest.raises(ValidationError):
            Settings()

    def test_claim_must_go_stale_before_redelivery(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLAIM_STALE_AFTER_SECONDS", "300")
        monkeypatch.setenv("QUEUE_VISIBILITY_TIMEOUT_SECONDS", "300")
        with pytest.raises(ValidationError, match="claim_stale_after_seconds"):
            Settings()

    def test_default_claim_goes_stale_before_redelivery(self) -> None:
        s = Settings()
        assert s.claim_stale_after_seconds < s.queue_visibility_timeout_seconds
