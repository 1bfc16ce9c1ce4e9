"""
Schema bootstrap and demo data for the report database.

Creates the customers / products / sales / sales_items tables and inserts a
small demo data set the first time the database is opened. Seeding is
skipped when the customers table already holds rows.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import Base, ReportDatabase
from app.models.database_models import Customer, Product, Sale, SaleItem

logger = logging.getLogger(__name__)


def _demo_rows():
    customers = [
        Customer(id=1, name="John Doe", signup_date=date(2024, 6, 15)),
        Customer(id=2, name="Jane Smith", signup_date=date(2024, 7, 1)),
    ]
    products = [
        Product(id=1, name="Flux Capacitor", price=1299.99),
        Product(id=2, name="Time-Turner", price=89.50),
        Product(id=3, name="Hoverboard", price=550.00),
    ]
    sales = [
        Sale(id=1, customer_id=1, sale_date=date(2024, 7, 5), amount=1849.99),
        Sale(id=2, customer_id=2, sale_date=date(2024, 7, 12), amount=550.00),
    ]
    items = [
        SaleItem(id=1, sale_id=1, product_id=1, quantity=1),
        SaleItem(id=2, sale_id=1, product_id=3, quantity=1),
        SaleItem(id=3, sale_id=2, product_id=3, quantity=1),
    ]
    return customers, products, sales, items


async def create_schema(database: ReportDatabase) -> None:
    """Create all tables defined on Base.metadata (no-op for existing ones)."""
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created/verified")


async def seed_database(database: ReportDatabase) -> bool:
    """
    Create the schema and insert demo rows if the database is empty.

    Returns:
        True if demo rows were inserted, False if data was already present.
    """
    await create_schema(database)

    session_factory = async_sessionmaker(
        database.engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        existing = await session.scalar(select(func.count()).select_from(Customer))
        if existing:
            logger.info("Database already seeded (%d customers)", existing)
            return False

        customers, products, sales, items = _demo_rows()
        try:
            # Parents first so foreign keys resolve
            session.add_all(customers)
            session.add_all(products)
            await session.flush()
            session.add_all(sales)
            await session.flush()
            session.add_all(items)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(
        "Database seeded: %d customers, %d products, %d sales, %d sale items",
        len(customers),
        len(products),
        len(sales),
        len(items),
    )
    return True


def describe_schema() -> str:
    """
    Describe the report tables as ``table(column TYPE, ...)`` lines, used as
    context in AI prompts.
    """
    lines = []
    for table in Base.metadata.sorted_tables:
        columns = []
        for column in table.columns:
            column_type = str(column.type)
            suffix = ""
            if column.primary_key:
                suffix = " PRIMARY KEY"
            elif column.foreign_keys:
                target = next(iter(column.foreign_keys)).target_fullname
                suffix = f" REFERENCES {target}"
            columns.append(f"{column.name} {column_type}{suffix}")
        lines.append(f"{table.name}({', '.join(columns)})")
    return "\n".join(lines)
