from __future__ import annotations

import pytest

from rental_report.config import Settings
from rental_report.infrastructure.postgres import (
    DETAIL_COLUMNS,
    PostgresSession,
    _where,
)
from rental_report.infrastructure.schema import ReportTables


def test_where_without_criteria_has_no_params():
    _, params = _where({})

    assert params == []


def test_where_orders_params_like_criteria():
    _, params = _where({"customer_id": 3, "email": "a@example.org"})

    assert params == [3, "a@example.org"]


def test_where_rejects_unknown_columns():
    with pytest.raises(ValueError, match="full_name"):
        _where({"full_name": "x"})


def test_update_rejects_key_columns():
    session = PostgresSession(conn=None, tables=ReportTables.from_settings(Settings(_env_file=None)))

    with pytest.raises(ValueError, match="customer_id"):
        session.update_details({}, {"customer_id": 5})


def test_empty_insert_skips_the_database():
    session = PostgresSession(conn=None, tables=ReportTables.from_settings(Settings(_env_file=None)))

    assert session.insert_details([]) == 0


def test_detail_columns_match_the_model():
    from rental_report.domain.models import DetailRecord

    assert set(DETAIL_COLUMNS) == set(DetailRecord.model_fields)


def test_report_tables_follow_settings():
    tables = ReportTables.from_settings(
        Settings(_env_file=None, db_schema="report", detail_table="d", summary_table="s")
    )

    assert (tables.schema, tables.detail_name, tables.summary_name) == ("report", "d", "s")
