from __future__ import annotations


def test_defaults(monkeypatch) -> None:
    for name in (
        "TRIAGE_NAMESPACE",
        "TRIAGE_LABEL_SELECTOR",
        "TRIAGE_EXPLAIN",
        "TRIAGE_FIX",
        "TRIAGE_ANONYMIZE",
        "TRIAGE_TIMEOUT_SECONDS",
        "TRIAGE_OUTPUT_DIR",
        "TRIAGE_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)

    from triage.config import load_config

    cfg = load_config()
    assert cfg.namespace == ""
    assert cfg.label_selector == ""
    assert (cfg.explain, cfg.fix, cfg.anonymize) == (False, False, False)
    assert cfg.timeout_seconds == 300.0
    assert cfg.output_dir == "."
    assert cfg.config_path is None


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("TRIAGE_NAMESPACE", " prod ")
    monkeypatch.setenv("TRIAGE_LABEL_SELECTOR", "app=web")
    monkeypatch.setenv("TRIAGE_EXPLAIN", "yes")
    monkeypatch.setenv("TRIAGE_FIX", "1")
    monkeypatch.setenv("TRIAGE_ANONYMIZE", "off")
    monkeypatch.setenv("TRIAGE_OUTPUT_DIR", "/tmp/out")
    monkeypatch.setenv("TRIAGE_CONFIG", "/etc/triage.yaml")

    from triage.config import load_config

    cfg = load_config()
    assert cfg.namespace == "prod"
    assert cfg.label_selector == "app=web"
    assert (cfg.explain, cfg.fix, cfg.anonymize) == (True, True, False)
    assert cfg.output_dir == "/tmp/out"
    assert cfg.config_path == "/etc/triage.yaml"


def test_timeout_is_clamped_and_tolerates_garbage(monkeypatch) -> None:
    from triage.config import load_config

    monkeypatch.setenv("TRIAGE_TIMEOUT_SECONDS", "1")
    assert load_config().timeout_seconds == 5.0
    monkeypatch.setenv("TRIAGE_TIMEOUT_SECONDS", "999999")
    assert load_config().timeout_seconds == 3600.0
    monkeypatch.setenv("TRIAGE_TIMEOUT_SECONDS", "soon")
    assert load_config().timeout_seconds == 300.0
