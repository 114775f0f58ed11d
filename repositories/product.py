from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, selectinload

from db import session_execute, session_flush
from models.product import Product, ProductDTO, Category


class ProductRepository:
    """Authoritative catalog lookup. The only source of unit prices for pricing."""

    @staticmethod
    def _to_dto(product: Product) -> ProductDTO:
        return ProductDTO(
            id=product.id,
            name=product.name,
            price=product.price,
            product_type=product.product_type,
            category_ids=sorted(category.id for category in product.categories),
            excluded_from_discount=product.excluded_from_discount,
            is_active=product.is_active,
        )

    @staticmethod
    async def get_by_ids(
        product_ids: list[int],
        session: Session | AsyncSession
    ) -> dict[int, ProductDTO]:
        """
        Batch-load active products (prevents N+1 queries).

        Args:
            product_ids: Product IDs referenced by the cart
            session: Database session

        Returns:
            Dict mapping product_id to ProductDTO. Unknown or inactive products are absent.
        """
        if not product_ids:
            return {}

        stmt = (
            select(Product)
            .where(Product.id.in_(set(product_ids)))
            .where(Product.is_active == True)
            .options(selectinload(Product.categories))
        )
        result = await session_execute(stmt, session)
        return {product.id: ProductRepository._to_dto(product) for product in result.scalars().all()}

    @staticmethod
    async def create(product_dto: ProductDTO, session: Session | AsyncSession) -> ProductDTO:
        categories = []
        if product_dto.category_ids:
            stmt = select(Category).where(Category.id.in_(product_dto.category_ids))
            result = await session_execute(stmt, session)
            categories = list(result.scalars().all())

        product = Product(
            id=product_dto.id,
            name=product_dto.name,
            price=product_dto.price,
            product_type=product_dto.product_type.value,
            excluded_from_discount=product_dto.excluded_from_discount,
            is_active=product_dto.is_active,
            categories=categories,
        )
        session.add(product)
        await session_flush(session)
        return ProductRepository._to_dto(product)
