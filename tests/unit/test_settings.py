from pathlib import Path

from ugc_validator.types import FailurePolicy
from ugc_validator.config.settings import load_config


def test_defaults(monkeypatch):
    for name in ("REQUIRED_IMAGE_COUNT", "MIN_ACCEPTED_FOR_REWARD", "CLASSIFIER_FAILURE_POLICY", "MAX_FILE_SIZE", "MIN_IMAGE_HEIGHT"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config.required_image_count == 3
    assert config.min_accepted_for_reward == 3
    assert config.max_file_size == 5 * 1024 * 1024
    assert config.min_image_height == 400
    assert config.classifier_failure_policy == FailurePolicy.REJECT


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("REQUIRED_IMAGE_COUNT", "4")
    monkeypatch.delenv("MIN_ACCEPTED_FOR_REWARD", raising=False)
    monkeypatch.setenv("CLASSIFIER_FAILURE_POLICY", "ACCEPT")
    monkeypatch.setenv("ALLOWED_MIME_TYPES", "image/jpeg, image/png")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "db.sqlite"))
    monkeypatch.setenv("SMTP_USE_TLS", "false")

    config = load_config()

    assert config.required_image_count == 4
    assert config.min_accepted_for_reward == 4
    assert config.classifier_failure_policy == FailurePolicy.ACCEPT
    assert config.allowed_mime_types == ["image/jpeg", "image/png"]
    assert config.database_path == Path(tmp_path / "db.sqlite")
    assert config.smtp_use_tls is False


def test_unknown_failure_policy_falls_back_to_reject(monkeypatch):
    monkeypatch.setenv("CLASSIFIER_FAILURE_POLICY", "shrug")
    assert load_config().classifier_failure_policy == FailurePolicy.REJECT
