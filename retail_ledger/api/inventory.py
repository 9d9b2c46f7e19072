"""
Inventory API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retail_ledger.api.deps import http_error
from retail_ledger.exceptions import NotFoundError
from retail_ledger.models.base import get_db
from retail_ledger.models.catalog import ProductUnit
from retail_ledger.schemas.inventory import BatchResponse, StockResponse
from retail_ledger.services.inventory_service import InventoryAllocator

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get(
    "/product-units/{product_unit_id}/batches",
    response_model=StockResponse,
)
def get_batches(
    product_unit_id: int,
    db: Session = Depends(get_db),
):
    """Batches of a product unit in the order sales consume them."""
    unit = db.get(ProductUnit, product_unit_id)
    if not unit or unit.is_deleted:
        raise http_error(NotFoundError("Product unit", product_unit_id))

    allocator = InventoryAllocator(db)
    return StockResponse(
        product_unit_id=product_unit_id,
        available_quantity=allocator.available_quantity(product_unit_id),
        batches=[
            BatchResponse.model_validate(batch)
            for batch in allocator.list_batches(product_unit_id)
        ],
    )
