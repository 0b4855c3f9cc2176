"""Catalog and association reads for the recommendation engine."""

from typing import Dict, Iterable, List, Optional

from sqlalchemy import insert, select

from models.product import Product, ProductAssociation
from repositories.schema import product_associations, products
from repositories.sql_repo import SqlRepository


class ProductRepository(SqlRepository):
    """Products and directed association strengths."""

    def get(self, product_id: str) -> Optional[Product]:
        row = self._fetch_one(select(products).where(products.c.product_id == product_id))
        return Product.model_validate(row) if row else None

    def get_many(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        """Active products keyed by id; unknown ids are absent."""
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = self._fetch_all(
            select(products).where(products.c.product_id.in_(ids), products.c.is_active.is_(True))
        )
        return {row["product_id"]: Product.model_validate(row) for row in rows}

    def in_categories(self, categories: Iterable[str]) -> List[Product]:
        cats = list(set(categories))
        if not cats:
            return []
        rows = self._fetch_all(
            select(products)
            .where(products.c.category.in_(cats), products.c.is_active.is_(True))
            .order_by(products.c.product_id)
        )
        return [Product.model_validate(row) for row in rows]

    def pricier_in_category(self, category: str, price: float) -> List[Product]:
        """Active products in the category priced strictly above ``price``."""
        rows = self._fetch_all(
            select(products).where(
                products.c.category == category,
                products.c.price > price,
                products.c.is_active.is_(True),
            )
        )
        return [Product.model_validate(row) for row in rows]

    def associations_from(self, product_ids: Iterable[str]) -> List[ProductAssociation]:
        """Association rows whose source is one of ``product_ids``."""
        ids = list(set(product_ids))
        if not ids:
            return []
        rows = self._fetch_all(
            select(product_associations).where(product_associations.c.product_id.in_(ids))
        )
        return [ProductAssociation.model_validate(row) for row in rows]

    def add(self, product: Product) -> None:
        self._execute(insert(products).values(**product.model_dump()))

    def add_association(self, association: ProductAssociation) -> None:
        self._execute(insert(product_associations).values(**association.model_dump()))
