from __future__ import annotations

import csv
from pathlib import Path
from time import sleep

import pytest
from pydantic import ValidationError

from rental_report.config import Settings
from rental_report.domain.models import DetailFilter
from rental_report.utils.timing import timed_block
from scripts import seed_upstream

SLEEP_SECONDS = 0.05


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in ("DB_HOST", "DB_PORT", "DB_NAME", "SUMMARY_LIMIT", "DETAIL_TABLE", "SUMMARY_TABLE"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.summary_limit == 100
    assert settings.detail_table == "rental_detail"
    assert settings.summary_table == "rental_summary"
    assert settings.detail_append_only is False
    assert settings.dsn.startswith("postgresql://")


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUMMARY_LIMIT", "25")
    monkeypatch.setenv("DETAIL_APPEND_ONLY", "true")

    settings = Settings(_env_file=None)

    assert settings.summary_limit == 25
    assert settings.detail_append_only is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"summary_limit": 0},
        {"detail_table": "rental_detail; DROP TABLE customer"},
        {"db_schema": "1starts_with_digit"},
        {"pool_min_size": 3, "pool_max_size": 2},
    ],
)
def test_settings_reject_invalid_values(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_timed_block_measures_time():
    with timed_block("sleep") as stats:
        sleep(SLEEP_SECONDS)

    assert stats.duration_seconds >= SLEEP_SECONDS
    assert stats.as_log_fields()["label"] == "sleep"
    if stats.rss_delta_bytes is not None:
        assert isinstance(stats.rss_delta_bytes, int)


def test_detail_filter_criteria_skip_unset_fields():
    flt = DetailFilter(customer_id=3, limit=10)

    assert flt.criteria() == {"customer_id": 3}


def test_seed_script_writes_csvs(tmp_path: Path):
    customers_csv = tmp_path / "customer.csv"
    rentals_csv = tmp_path / "rental.csv"

    seed_upstream._generate_customers_csv(customers_csv, customers=5, seed=123)
    orphans = seed_upstream._generate_rentals_csv(
        rentals_csv, rentals=40, customers=5, orphan_ratio=0.0, seed=123
    )

    with customers_csv.open(newline="", encoding="utf-8") as f:
        customer_rows = list(csv.reader(f))
    with rentals_csv.open(newline="", encoding="utf-8") as f:
        rental_rows = list(csv.reader(f))
    assert customer_rows[0] == seed_upstream.CUSTOMER_HEADER
    assert len(customer_rows) == 6
    assert rental_rows[0] == seed_upstream.RENTAL_HEADER
    assert len(rental_rows) == 41
    assert orphans == 0
    assert {int(row[1]) for row in rental_rows[1:]} <= set(range(1, 6))


def test_seed_script_orphans_reference_unknown_customers(tmp_path: Path):
    rentals_csv = tmp_path / "rental.csv"

    orphans = seed_upstream._generate_rentals_csv(
        rentals_csv, rentals=10, customers=5, orphan_ratio=1.0, seed=7
    )

    with rentals_csv.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert orphans == 10
    assert all(int(row["customer_id"]) > 5 for row in rows)
