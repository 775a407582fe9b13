from __future__ import annotations

import os
from dataclasses import dataclass


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip()
    placeholder = f"{name}="
    unquoted = value.strip("'\"").strip()
    if unquoted.lower() == placeholder.lower():
        return default.strip()
    return value if value else default.strip()


def _env_first(names: tuple[str, ...], default: str = "") -> str:
    for name in names:
        value = _env(name)
        if value:
            return value
    return default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TrackerConfig:
    gsc_site_url: str
    gsc_credentials_path: str
    gsc_credentials_json: str
    gsc_country_filter: str
    gsc_search_type: str
    gsc_dimensions: str
    gsc_row_limit: int
    gsc_max_rows: int

    snapshot_dir: str
    report_dir: str

    report_top_n: int
    weekly_top_n: int
    min_impressions: int
    opportunity_ctr: float
    ctr_max: float
    ctr_top_n: int

    brand_name: str
    fetch_titles: bool
    title_timeout_sec: float
    zero_impression_weight: float

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        return cls(
            gsc_site_url=_env("GSC_SITE_URL", "sc-domain:example.com"),
            gsc_credentials_path=_env_first(
                ("GSC_CREDENTIALS_PATH", "GOOGLE_APPLICATION_CREDENTIALS", "GSC_SA_KEY_PATH", "GSC_KEY")
            ),
            gsc_credentials_json=_env("GSC_SA_KEY"),
            gsc_country_filter=_env("GSC_COUNTRY_FILTER"),
            gsc_search_type=_env("GSC_SEARCH_TYPE", "web"),
            gsc_dimensions=_env("GSC_DIMENSIONS", "query,page,device,country,date"),
            gsc_row_limit=_env_int("GSC_ROW_LIMIT", 25000),
            gsc_max_rows=_env_int("GSC_MAX_ROWS", 500000),
            snapshot_dir=_env("SNAPSHOT_DIR", "data/rank-snapshots"),
            report_dir=_env("REPORT_DIR", "rank-reports"),
            report_top_n=_env_int("REPORT_TOP_N", 20),
            weekly_top_n=_env_int("WEEKLY_TOP_N", 10),
            min_impressions=_env_int("MIN_IMPRESSIONS", 500),
            opportunity_ctr=_env_float("OPPORTUNITY_CTR", 0.015),
            ctr_max=_env_float("CTR_MAX", 0.02),
            ctr_top_n=_env_int("CTR_TOP_N", 30),
            brand_name=_env("BRAND_NAME", "ConvertCraft"),
            fetch_titles=_env_bool("FETCH_TITLES", True),
            title_timeout_sec=_env_float("TITLE_TIMEOUT_SEC", 10.0),
            zero_impression_weight=_env_float("ZERO_IMPRESSION_WEIGHT", 1.0),
        )
