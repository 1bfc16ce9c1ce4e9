"""
SQLAlchemy ORM models for the report database.

The sales schema queried by report parameters. It is owned by the seeding
service; report generation only ever reads from it.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    Float,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from app.database import Base


class Customer(Base):
    """A customer and the date they signed up."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    signup_date = Column(Date, nullable=False)

    # Relationships
    sales = relationship("Sale", back_populates="customer")


class Product(Base):
    """A product in the catalogue."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)

    # Relationships
    sale_items = relationship("SaleItem", back_populates="product")


class Sale(Base):
    """A sale with its total amount."""

    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True)
    sale_date = Column(Date, nullable=False)
    amount = Column(Float, nullable=False)

    # Relationships
    customer = relationship("Customer", back_populates="sales")
    items = relationship("SaleItem", back_populates="sale", cascade="all, delete-orphan")


class SaleItem(Base):
    """A line item of a sale."""

    __tablename__ = "sales_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    quantity = Column(Integer, nullable=False)

    # Relationships
    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_items")
