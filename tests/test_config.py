from clinic_scheduler import config
from clinic_scheduler.config import Settings


def test_secret_key_reads_jwt_alias(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "from-the-environment")
    assert Settings(_env_file=None).SECRET_KEY == "from-the-environment"


def test_scheduling_defaults(monkeypatch):
    for name in ("ATOMIC_RETRY_ATTEMPTS", "SHIFT_ALLOW_PAST", "SLOT_ALLOW_PAST"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.ATOMIC_RETRY_ATTEMPTS == 3
    assert s.SHIFT_ALLOW_PAST is False
    assert s.SLOT_ALLOW_PAST is False


def test_allowed_origins_csv():
    assert Settings(_env_file=None, ALLOWED_ORIGINS=" https://a.test , https://b.test").allowed_origins_list == [
        "https://a.test",
        "https://b.test",
    ]


def test_settings_are_built_on_demand():
    assert not hasattr(config, "settings")
    assert config.get_settings() is config.get_settings()
