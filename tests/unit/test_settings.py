from gatekeeper.settings import Settings, get_settings


def test_get_settings_is_cached():
    get_settings.cache_clear()
    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2  # lru_cache returns the same instance


def test_env_overrides_and_cache_clear(monkeypatch):
    monkeypatch.setenv("APPROVAL_TTL_SECONDS", "42")
    get_settings.cache_clear()
    s = get_settings()
    assert s.approval_ttl_seconds == 42

    monkeypatch.delenv("APPROVAL_TTL_SECONDS", raising=False)
    get_settings.cache_clear()
    s2 = get_settings()
    assert s2.approval_ttl_seconds != 42


def test_policy_defaults(monkeypatch):
    for name in (
        "CODE_TTL_SECONDS",
        "RESEND_COOLDOWN_SECONDS",
        "CODE_MAX_ATTEMPTS",
        "PENDING_SIGNUP_TTL_SECONDS",
        "SWEEP_INTERVAL_SECONDS",
        "APPROVAL_TTL_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.code_ttl_seconds == 600
    assert s.resend_cooldown_seconds == 60
    assert s.code_max_attempts == 3
    assert s.pending_signup_ttl_seconds == 86400
    assert s.sweep_interval_seconds == 600
    assert s.approval_ttl_seconds == 300
