from pathlib import Path

import pytest

from autoapply.config import load_config, load_users, settings_from_dict


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_config_means_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv("AUTOAPPLY_TIMEZONE", raising=False)
    config = load_config(tmp_path / "nope.yaml")
    assert config.timezone == "UTC"
    assert config.tick_minutes == 60
    assert config.worker.max_attempts == 3
    assert config.policy.match_interval_hours == 0
    assert config.handlers.job_retention_days == 90


def test_config_sections_are_typed(tmp_path, monkeypatch):
    monkeypatch.delenv("AUTOAPPLY_TIMEZONE", raising=False)
    path = _write(tmp_path, "automation.yaml", """
timezone: Europe/Berlin
tick_minutes: 30
data_dir: /tmp/autoapply-data
policy:
  match_interval_hours: 6
worker:
  batch_size: 5
  stale_after_minutes: 12.5
""")
    config = load_config(path)
    assert config.timezone == "Europe/Berlin"
    assert config.tick_minutes == 30
    assert config.data_dir == Path("/tmp/autoapply-data")
    assert config.policy.match_interval_hours == 6.0
    assert config.worker.batch_size == 5
    assert config.worker.stale_after_minutes == 12.5


def test_timezone_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("AUTOAPPLY_TIMEZONE", "Asia/Kolkata")
    assert load_config(tmp_path / "nope.yaml").timezone == "Asia/Kolkata"


@pytest.mark.parametrize("text", [
    "surprise: 1\n",
    "worker:\n  batch_sizes: 5\n",
    "worker:\n  batch_size: lots\n",
    "policy: [1, 2]\n",
    "timezone: Nowhere/Special\n",
    "- just\n- a list\n",
])
def test_bad_config_raises(tmp_path, monkeypatch, text):
    monkeypatch.delenv("AUTOAPPLY_TIMEZONE", raising=False)
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, "automation.yaml", text))


def test_settings_from_dict_window_forms():
    settings = settings_from_dict({"apply_window": {"start_hour": "08:00", "end_hour": 18}})
    assert (settings.apply_window_start, settings.apply_window_end) == (8, 18)
    legacy = settings_from_dict({"auto_apply_hours_start": 7, "auto_apply_hours_end": "16:30"})
    assert (legacy.apply_window_start, legacy.apply_window_end) == (7, 16)


def test_settings_from_dict_defaults_and_errors():
    settings = settings_from_dict(None, default_timezone="America/Chicago")
    assert settings.auto_apply_enabled is False
    assert settings.min_match_score == 70
    assert settings.timezone == "America/Chicago"
    assert settings_from_dict({"excluded_companies": ["Initech"]}).excluded_companies == {"Initech"}
    with pytest.raises(ValueError):
        settings_from_dict({"auto_aply_enabled": True})
    with pytest.raises(ValueError):
        settings_from_dict({"min_match_score": "high"})


def test_load_users(tmp_path):
    path = _write(tmp_path, "users.yaml", """
users:
  - id: alex
    email: alex@example.com
    profile:
      desired_job_titles: [Backend Engineer]
    skills: [python]
    automation:
      auto_apply_enabled: true
      max_applications_per_day: 4
  - id: sam
""")
    alex, sam = load_users(path)
    assert alex.email == "alex@example.com"
    assert alex.settings.auto_apply_enabled is True
    assert alex.settings.max_applications_per_day == 4
    assert alex.skills == ["python"]
    assert sam.settings.auto_match_enabled is True


def test_load_users_missing_file(tmp_path):
    assert load_users(tmp_path / "users.yaml") == []


def test_duplicate_or_missing_ids_raise(tmp_path):
    with pytest.raises(ValueError, match="Duplicate"):
        load_users(_write(tmp_path, "dup.yaml", "users:\n  - id: a\n  - id: a\n"))
    with pytest.raises(ValueError, match="needs an 'id'"):
        load_users(_write(tmp_path, "noid.yaml", "users:\n  - email: x@example.com\n"))
