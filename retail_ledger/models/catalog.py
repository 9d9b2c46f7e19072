"""
Product units.

The catalog (products, units, brands) is owned by another system.
The engine only needs the sellable unit variant: it is the unit of
inventory and pricing granularity, so batches and sale lines point
here rather than at the product.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from retail_ledger.models.base import Base


class ProductUnit(Base):
    __tablename__ = "product_units"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Catalog ids; the catalog tables live outside this engine
    product_id: Mapped[int] = mapped_column(nullable=False, index=True)
    unit_name: Mapped[str] = mapped_column(String(50), nullable=False)
    conversion_factor: Mapped[Decimal] = mapped_column(
        Numeric(18, 4), nullable=False, default=Decimal("1")
    )
    sale_price: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 2), nullable=True
    )
    barcode: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<ProductUnit {self.id} product={self.product_id} {self.unit_name}>"
