"""Data-access tests against a real SQLite database."""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import DateTime, text
from sqlalchemy.ext.asyncio import create_async_engine

from app.core.errors import DuplicateCodeError, EntityNotFoundError
from app.models.base import utcnow
from app.models.code_entity import CodedEntityCreate, HealthStatus, QueryOptions
from app.models.customer import Customer
from app.models.line_fvi import LineFvi
from app.services.code_entity.config import make_entity_config
from app.services.code_entity.repository import CodeEntityRepository, escape_like
from app.services.customers import CUSTOMER_CONFIG


async def _seed(repo, *pairs, actor_id: int = 1):
    for code, name in pairs:
        await repo.create(CodedEntityCreate(code=code, name=name), actor_id)


def test_escape_like_escapes_wildcards():
    assert escape_like("100%") == "100\\%"
    assert escape_like("a_b") == "a\\_b"
    assert escape_like("back\\slash") == "back\\\\slash"
    assert escape_like("plain") == "plain"


def test_repository_rejects_mismatched_table():
    config = make_entity_config("customer", "not_customers", 5)
    eng = create_async_engine("sqlite+aiosqlite://")
    with pytest.raises(ValueError, match="not_customers"):
        CodeEntityRepository(eng, Customer, config)


def test_repository_rejects_unknown_searchable_field():
    config = make_entity_config("customer", "customers", 5, searchable_fields=("code", "email"))
    eng = create_async_engine("sqlite+aiosqlite://")
    with pytest.raises(ValueError, match="email"):
        CodeEntityRepository(eng, Customer, config)


@pytest.mark.asyncio
async def test_create_sets_defaults_and_audit_fields(customer_repo):
    entity = await customer_repo.create(CodedEntityCreate(code="ACME1", name="Acme Corp"), 7)

    assert entity.code == "ACME1"
    assert entity.is_active is True
    assert entity.created_by == 7
    assert entity.updated_by == 7
    assert entity.created_at is not None


def test_timestamp_columns_store_naive_datetimes():
    for column in ("created_at", "updated_at"):
        assert type(Customer.__table__.c[column].type) is DateTime
        assert Customer.__table__.c[column].type.timezone is False


@pytest.mark.asyncio
async def test_timestamps_round_trip_as_naive_utc(customer_repo):
    before = utcnow()
    await customer_repo.create(CodedEntityCreate(code="ACME1", name="Acme Corp"), 7)

    entity = await customer_repo.get_by_code("ACME1")

    assert isinstance(entity.created_at, datetime)
    assert entity.created_at.tzinfo is None
    assert entity.updated_at.tzinfo is None
    assert entity.created_at >= before - timedelta(seconds=1)


@pytest.mark.asyncio
async def test_create_duplicate_code_raises(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme Corp"))

    with pytest.raises(DuplicateCodeError) as exc_info:
        await customer_repo.create(CodedEntityCreate(code="ACME1", name="Other Corp"), 1)
    assert exc_info.value.code == "ACME1"
    assert str(exc_info.value).startswith("Failed to create customer:")


@pytest.mark.asyncio
async def test_get_by_code_missing_returns_none(customer_repo):
    assert await customer_repo.get_by_code("NOPE") is None


@pytest.mark.asyncio
async def test_pagination_second_page(customer_repo):
    await _seed(customer_repo, *((f"C{i:03d}", f"Customer {i:03d}") for i in range(25)))

    page = await customer_repo.get_all(QueryOptions(page=2, limit=10))

    assert len(page.data) == 10
    assert page.pagination.page == 2
    assert page.pagination.limit == 10
    assert page.pagination.total == 25
    assert page.pagination.total_pages == 3
    assert page.data[0].code == "C010"


@pytest.mark.asyncio
async def test_last_page_is_short(customer_repo):
    await _seed(customer_repo, *((f"C{i:03d}", f"Customer {i:03d}") for i in range(25)))

    page = await customer_repo.get_all(QueryOptions(page=3, limit=10))
    assert len(page.data) == 5


@pytest.mark.asyncio
async def test_unknown_sort_field_falls_back_to_code(customer_repo):
    await _seed(customer_repo, ("BBB", "Alpha"), ("AAA", "Zulu"), ("CCC", "Mike"))

    page = await customer_repo.get_all(QueryOptions(sort_by="1; DROP TABLE customers"))

    assert [c.code for c in page.data] == ["AAA", "BBB", "CCC"]
    assert await customer_repo.count() == 3


@pytest.mark.asyncio
async def test_sort_by_name_descending(customer_repo):
    await _seed(customer_repo, ("BBB", "Alpha"), ("AAA", "Zulu"), ("CCC", "Mike"))

    page = await customer_repo.get_all(QueryOptions(sort_by="name", sort_order="DESC"))
    assert [c.name for c in page.data] == ["Zulu", "Mike", "Alpha"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(customer_repo):
    await _seed(
        customer_repo,
        ("P1", "100% Cotton"),
        ("P2", "1000 Cotton"),
        ("U1", "A_B Textiles"),
        ("U2", "AXB Textiles"),
        ("S1", "Back\\Slash Ltd"),
        ("S2", "BackSlash Ltd"),
    )

    percent = await customer_repo.get_all(QueryOptions(search="%"))
    assert [c.code for c in percent.data] == ["P1"]

    underscore = await customer_repo.get_all(QueryOptions(search="A_B"))
    assert [c.code for c in underscore.data] == ["U1"]

    backslash = await customer_repo.search("k\\S")
    assert [c.code for c in backslash.data] == ["S1"]


@pytest.mark.asyncio
async def test_search_matches_code_or_name(customer_repo):
    await _seed(customer_repo, ("TOY01", "Toyota"), ("HON01", "Honda Toy Division"), ("NIS01", "Nissan"))

    page = await customer_repo.search("toy")
    assert sorted(c.code for c in page.data) == ["HON01", "TOY01"]
    assert page.pagination.total == 2


@pytest.mark.asyncio
async def test_get_by_name_is_exact_and_case_insensitive(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme Corp"), ("ACME2", "Acme Corporation"))

    page = await customer_repo.get_by_name("ACME CORP")
    assert [c.code for c in page.data] == ["ACME1"]


@pytest.mark.asyncio
async def test_filter_status_and_search_narrowing(customer_repo):
    await _seed(customer_repo, ("A1", "Alpha"), ("A2", "Alpine"), ("B1", "Bravo"))
    await customer_repo.change_status("A2", 1)

    active = await customer_repo.filter_status(True)
    assert sorted(c.code for c in active.data) == ["A1", "B1"]

    inactive = await customer_repo.filter_status(False, QueryOptions(search="alp"))
    assert [c.code for c in inactive.data] == ["A2"]


@pytest.mark.asyncio
async def test_date_bounds_filter(customer_repo):
    await _seed(customer_repo, ("A1", "Alpha"), ("B1", "Bravo"))
    tomorrow = utcnow() + timedelta(days=1)
    yesterday = utcnow() - timedelta(days=1)

    assert (await customer_repo.get_all(QueryOptions(created_after=tomorrow))).pagination.total == 0
    assert (await customer_repo.get_all(QueryOptions(created_after=yesterday))).pagination.total == 2
    assert await customer_repo.count(QueryOptions(updated_before=yesterday)) == 0


@pytest.mark.asyncio
async def test_update_is_partial_and_keeps_code(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme Corp"))

    updated = await customer_repo.update("ACME1", {"name": "Acme Inc", "code": "HIJACK"}, 9)

    assert updated.code == "ACME1"
    assert updated.name == "Acme Inc"
    assert updated.is_active is True
    assert updated.updated_by == 9
    assert updated.created_by == 1
    assert await customer_repo.get_by_code("HIJACK") is None


@pytest.mark.asyncio
async def test_update_missing_raises_not_found(customer_repo):
    with pytest.raises(EntityNotFoundError):
        await customer_repo.update("NOPE", {"name": "Nobody"}, 1)


@pytest.mark.asyncio
async def test_change_status_twice_restores_flag(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme Corp"))
    original = await customer_repo.get_by_code("ACME1")

    assert await customer_repo.change_status("ACME1", 7) is True
    await asyncio.sleep(0.01)
    flipped = await customer_repo.get_by_code("ACME1")
    assert flipped.is_active is not original.is_active
    assert flipped.updated_at > original.updated_at

    await asyncio.sleep(0.01)
    assert await customer_repo.change_status("ACME1", 7) is True
    restored = await customer_repo.get_by_code("ACME1")
    assert restored.is_active is original.is_active
    assert restored.updated_at > flipped.updated_at


@pytest.mark.asyncio
async def test_change_status_missing_returns_false(customer_repo):
    assert await customer_repo.change_status("NOPE", 1) is False


@pytest.mark.asyncio
async def test_delete_removes_row(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme Corp"))

    assert await customer_repo.delete("ACME1") is True
    assert await customer_repo.get_by_code("ACME1") is None
    assert await customer_repo.count() == 0
    assert await customer_repo.delete("ACME1") is False


@pytest.mark.asyncio
async def test_exists(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme Corp"))
    assert await customer_repo.exists("ACME1") is True
    assert await customer_repo.exists("ACME2") is False


@pytest.mark.asyncio
async def test_find_similar_codes_excludes_exact_match(customer_repo):
    await _seed(customer_repo, ("AC", "Ac"), ("ACME1", "Acme One"), ("ACME2", "Acme Two"), ("ZZZ", "Zed"))

    assert await customer_repo.find_similar_codes("AC") == ["ACME1", "ACME2"]


@pytest.mark.asyncio
async def test_find_by_code_prefix_returns_active_only(customer_repo):
    await _seed(customer_repo, ("ACME1", "Acme One"), ("ACME2", "Acme Two"), ("BETA1", "Beta"))
    await customer_repo.change_status("ACME2", 1)

    matches = await customer_repo.find_by_code_prefix("AC")
    assert [(m.code, m.name) for m in matches] == [("ACME1", "Acme One")]


@pytest.mark.asyncio
async def test_health_empty_table_is_healthy(customer_repo):
    result = await customer_repo.health()

    assert result.status == HealthStatus.HEALTHY
    assert result.checks.database is True
    assert result.checks.table is True
    assert result.checks.records is True
    assert result.metrics.total == 0
    assert result.metrics.active == 0
    assert result.metrics.inactive == 0
    assert result.metrics.last_updated is None


@pytest.mark.asyncio
async def test_health_reports_metrics(customer_repo):
    await _seed(customer_repo, ("A1", "Alpha"), ("B1", "Bravo"))
    await customer_repo.change_status("B1", 1)

    result = await customer_repo.health()
    assert result.status == HealthStatus.HEALTHY
    assert (result.metrics.total, result.metrics.active, result.metrics.inactive) == (2, 1, 1)
    assert result.metrics.last_updated is not None


@pytest.mark.asyncio
async def test_health_missing_table_is_unhealthy(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    config = make_entity_config("line-fvi", "line_fvi", 5)
    repo = CodeEntityRepository(eng, LineFvi, config)

    result = await repo.health()
    await eng.dispose()

    assert result.status == HealthStatus.UNHEALTHY
    assert result.checks.database is True
    assert result.checks.table is False
    assert result.checks.records is False


@pytest.mark.asyncio
async def test_health_metrics_failure_is_degraded(customer_repo, monkeypatch):
    monkeypatch.setattr(
        customer_repo,
        "_aggregate_stmt",
        lambda with_last_updated: text("SELECT nope FROM customers"),
    )

    result = await customer_repo.health()

    assert result.status == HealthStatus.DEGRADED
    assert result.checks.database is True
    assert result.checks.table is True
    assert result.checks.records is False
    assert result.metrics.total == 0


@pytest.mark.asyncio
async def test_statistics(customer_repo):
    await _seed(customer_repo, ("A1", "Alpha"), ("B1", "Bravo"), ("C1", "Charlie"))
    await customer_repo.change_status("C1", 1)

    stats = await customer_repo.statistics()
    assert stats.overview.total == 3
    assert stats.overview.active == 2
    assert stats.overview.inactive == 1


def test_customer_config_sort_fields():
    assert CUSTOMER_CONFIG.sort_fields == ("code", "name", "is_active", "created_at", "updated_at")
