import os

from sitesearch.utils.env_loader import load_environment


def test_load_environment_from_custom_file(monkeypatch, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("TEST_SITE_URL=https://example.com\nWORKERS=4\n")

    monkeypatch.delenv("TEST_SITE_URL", raising=False)
    monkeypatch.delenv("WORKERS", raising=False)

    loaded = load_environment(env_file, override=True)

    assert loaded is True
    assert os.getenv("TEST_SITE_URL") == "https://example.com"
    assert os.getenv("WORKERS") == "4"


def test_load_environment_uses_env_file_variable(monkeypatch, tmp_path):
    env_file = tmp_path / "from-variable.env"
    env_file.write_text("TEST_FROM_VARIABLE=yes\n")
    monkeypatch.setenv("SITESEARCH_ENV_FILE", str(env_file))

    assert load_environment(override=True) is True
    assert os.getenv("TEST_FROM_VARIABLE") == "yes"


def test_load_environment_missing_file(tmp_path):
    missing_file = tmp_path / "missing.env"

    loaded = load_environment(missing_file)

    assert loaded is False
