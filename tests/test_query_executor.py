"""Tests for report-date substitution and single-value query execution."""
import pytest

from app.database import DatabaseUnavailableError, ReportDatabase
from app.services.query_executor import ParameterValue, QueryExecutor, substitute_report_date


NEW_CUSTOMERS_SQL = (
    "SELECT COUNT(id) FROM customers "
    "WHERE strftime('%Y-%m', signup_date) = '[REPORT_DATE]';"
)


# ---------------------------------------------------------------------------
# substitute_report_date
# ---------------------------------------------------------------------------

def test_substitute_replaces_every_occurrence():
    sql = "SELECT '[REPORT_DATE]' AS a, '[REPORT_DATE]' AS b"
    assert substitute_report_date(sql, "2025-09") == "SELECT '2025-09' AS a, '2025-09' AS b"


def test_substitute_without_token_is_unchanged():
    sql = "SELECT COUNT(*) FROM products"
    assert substitute_report_date(sql, "2025-09") == sql


def test_substitute_custom_token():
    assert substitute_report_date("x = '{{month}}'", "2024-01", token="{{month}}") == "x = '2024-01'"


@pytest.mark.parametrize(
    "bad",
    [
        "",
        "2025-9",
        "2025-13",
        "2025-00",
        "25-09",
        "2025/09",
        "2025-09-01",
        "2025-09\n",
        "２０２５-09",  # full-width digits
    ],
)
def test_substitute_rejects_malformed_dates(bad):
    with pytest.raises(ValueError):
        substitute_report_date("SELECT 1", bad)


# ---------------------------------------------------------------------------
# QueryExecutor.run
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_run_returns_first_value(database: ReportDatabase):
    value = await QueryExecutor(database).run(NEW_CUSTOMERS_SQL, "2024-07", "new_customers")
    assert value == ParameterValue.ok("1")
    assert not value.is_error


@pytest.mark.asyncio
async def test_run_uses_only_first_column_of_first_row(database: ReportDatabase):
    value = await QueryExecutor(database).run(
        "SELECT name, price FROM products ORDER BY id", "2024-07"
    )
    assert value.text == "Flux Capacitor"


@pytest.mark.asyncio
async def test_run_without_rows_gives_no_data_value(database: ReportDatabase):
    value = await QueryExecutor(database).run(
        "SELECT name FROM customers WHERE id = 999", "2024-07"
    )
    assert value == ParameterValue.ok("N/A")


@pytest.mark.asyncio
async def test_run_null_value_gives_no_data_value(database: ReportDatabase):
    sql = "SELECT SUM(amount) FROM sales WHERE strftime('%Y-%m', sale_date) = '[REPORT_DATE]'"
    value = await QueryExecutor(database).run(sql, "2030-01")
    assert value == ParameterValue.ok("N/A")


@pytest.mark.asyncio
async def test_run_decodes_blob_values(database: ReportDatabase):
    value = await QueryExecutor(database).run("SELECT CAST('abc' AS BLOB)", "2024-07")
    assert value.text == "abc"


@pytest.mark.asyncio
async def test_run_syntax_error_gives_error_value(database: ReportDatabase):
    value = await QueryExecutor(database).run("SELEC nonsense", "2024-07", "broken")
    assert value.is_error
    assert value.text == "Query Error"


@pytest.mark.asyncio
async def test_run_unknown_table_gives_error_value(database: ReportDatabase):
    value = await QueryExecutor(database).run("SELECT * FROM invoices", "2024-07")
    assert value == ParameterValue.error("Query Error")


@pytest.mark.asyncio
async def test_run_custom_markers(database: ReportDatabase):
    executor = QueryExecutor(database, no_data_value="-", error_value="ERR")
    assert (await executor.run("SELECT NULL", "2024-07")).text == "-"
    assert (await executor.run("SELECT FROM", "2024-07")).text == "ERR"


@pytest.mark.asyncio
async def test_run_never_commits(database: ReportDatabase):
    executor = QueryExecutor(database)
    value = await executor.run(
        "INSERT INTO products (name, price) VALUES ('Sonic Screwdriver', 10.0)", "2024-07"
    )
    # Write statements return no rows, which is a query error
    assert value.is_error

    count = await executor.run("SELECT COUNT(*) FROM products", "2024-07")
    assert count.text == "3"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "statement",
    [
        "DROP TABLE products",
        "DELETE FROM products",
        "CREATE TABLE scratch (id INTEGER)",
        "ALTER TABLE products ADD COLUMN colour TEXT",
    ],
)
async def test_run_refuses_schema_and_data_changes(database: ReportDatabase, statement: str):
    executor = QueryExecutor(database)
    value = await executor.run(statement, "2024-07")
    assert value.is_error

    count = await executor.run("SELECT COUNT(*) FROM products", "2024-07")
    assert count.text == "3"
    tables = await executor.run(
        "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = 'scratch'", "2024-07"
    )
    assert tables.text == "0"
    columns = await executor.run(
        "SELECT COUNT(*) FROM pragma_table_info('products') WHERE name = 'colour'", "2024-07"
    )
    assert columns.text == "0"


@pytest.mark.asyncio
async def test_run_leaves_connection_writable(database: ReportDatabase):
    executor = QueryExecutor(database)
    await executor.run("SELECT COUNT(*) FROM products", "2024-07")

    async with database.connect() as conn:
        await conn.exec_driver_sql(
            "INSERT INTO products (name, price) VALUES ('Sonic Screwdriver', 10.0)"
        )
        await conn.commit()

    count = await executor.run("SELECT COUNT(*) FROM products", "2024-07")
    assert count.text == "4"


@pytest.mark.asyncio
async def test_run_rejects_malformed_date(database: ReportDatabase):
    with pytest.raises(ValueError):
        await QueryExecutor(database).run(NEW_CUSTOMERS_SQL, "July")


@pytest.mark.asyncio
async def test_run_on_closed_database_raises(tmp_path):
    closed = ReportDatabase(f"sqlite+aiosqlite:///{tmp_path / 'never-opened.db'}")
    with pytest.raises(DatabaseUnavailableError):
        await QueryExecutor(closed).run("SELECT 1", "2024-07")
