import pytest

from seo_rank_tracker.config import TrackerConfig


def test_defaults_match_report_thresholds(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("MIN_IMPRESSIONS", "OPPORTUNITY_CTR", "CTR_MAX", "GSC_ROW_LIMIT", "REPORT_TOP_N"):
        monkeypatch.delenv(name, raising=False)
    config = TrackerConfig.from_env()
    assert config.min_impressions == 500
    assert config.opportunity_ctr == 0.015
    assert config.ctr_max == 0.02
    assert config.gsc_row_limit == 25000
    assert config.report_top_n == 20
    assert config.zero_impression_weight == 1.0


def test_placeholder_value_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SNAPSHOT_DIR", "SNAPSHOT_DIR=")
    config = TrackerConfig.from_env()
    assert config.snapshot_dir == "data/rank-snapshots"


def test_credentials_path_fallback_chain(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GSC_CREDENTIALS_PATH", raising=False)
    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)
    monkeypatch.setenv("GSC_SA_KEY_PATH", "/secrets/sa.json")
    config = TrackerConfig.from_env()
    assert config.gsc_credentials_path == "/secrets/sa.json"


def test_bool_and_float_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FETCH_TITLES", "off")
    monkeypatch.setenv("ZERO_IMPRESSION_WEIGHT", "0")
    config = TrackerConfig.from_env()
    assert config.fetch_titles is False
    assert config.zero_impression_weight == 0.0
