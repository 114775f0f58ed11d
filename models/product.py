from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Boolean, Numeric, ForeignKey, CheckConstraint, Table
from sqlalchemy.orm import relationship

from models.base import Base
from enums.product_type import ProductType

product_categories = Table(
    "product_categories",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)


class Category(Base):
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)


# Authoritative catalog entry. Cart prices are always read from here.
class Product(Base):
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    product_type = Column(String(32), nullable=False, default=ProductType.OTHER.value)
    # Custom items and similar products that must never be discounted
    excluded_from_discount = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    categories = relationship("Category", secondary=product_categories, lazy="selectin")

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_product_price_non_negative'),
    )


class ProductDTO(BaseModel):
    id: int
    name: str
    price: Decimal
    product_type: ProductType = ProductType.OTHER
    category_ids: list[int] = []
    excluded_from_discount: bool = False
    is_active: bool = True
