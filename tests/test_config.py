import logging
from pathlib import Path

from sitecms.config import MIB, Settings
from sitecms.logging_config import setup_logging


def test_defaults_from_empty_environment():
    s = Settings.from_env({})
    assert s.session_secret_generated is True
    assert len(s.session_secret) > 32
    assert s.session_max_age == 12 * 60 * 60
    assert s.site_file == Path("/var/data/site-data.json").resolve()
    assert s.uploads_dir == Path("/var/data/uploads").resolve()
    assert s.max_site_bytes == 18 * MIB
    assert s.max_upload_bytes == 8 * MIB
    assert s.cookie_secure is False
    assert s.mail_configured is False
    assert s.port == 3000


def test_generated_secrets_differ_per_process_start():
    assert Settings.from_env({}).session_secret != Settings.from_env({}).session_secret


def test_values_from_environment(tmp_path):
    env = {
        "ADMIN_USER": "owner",
        "ADMIN_PASS": "pw",
        "SESSION_SECRET": "fixed",
        "DATA_DIR": str(tmp_path),
        "SITE_DATA_FILE": str(tmp_path / "custom.json"),
        "APP_ENV": "production",
        "BREVO_API_KEY": "k",
        "CONTACT_TO_EMAIL": "to@example.com",
        "CONTACT_FROM_EMAIL": "from@example.com",
        "CONTACT_RATE_LIMIT": "3",
        "TRUST_PROXY": "yes",
        "GEMINI_BASE_URL": "https://ai.example.test/",
        "PORT": "not-a-number",
    }
    s = Settings.from_env(env)
    assert s.admin_user == "owner"
    assert s.session_secret == "fixed"
    assert s.session_secret_generated is False
    assert s.site_file == (tmp_path / "custom.json").resolve()
    assert s.cookie_secure is True
    assert s.mail_configured is True
    assert s.contact_rate_limit == 3
    assert s.trust_proxy is True
    assert s.gemini_base_url == "https://ai.example.test"
    assert s.port == 3000


def test_render_disk_path_wins_over_data_dir(tmp_path):
    s = Settings.from_env({"RENDER_DISK_PATH": str(tmp_path / "disk"), "DATA_DIR": str(tmp_path / "other")})
    assert s.data_dir == (tmp_path / "disk").resolve()


def test_cookie_secure_can_be_disabled_in_production():
    s = Settings.from_env({"APP_ENV": "production", "COOKIE_SECURE": "false"})
    assert s.cookie_secure is False


def test_setup_logging_installs_single_console_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        setup_logging("warning")
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
