"""
Product API Routes
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from labelscan.api.dependencies import get_catalog
from labelscan.api.schemas import ProductResponse
from labelscan.identification.catalog import ProductCatalog


router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=List[ProductResponse])
async def list_products(catalog: ProductCatalog = Depends(get_catalog)) -> List[ProductResponse]:
    """List catalog products in priority order."""
    return [ProductResponse(**product.to_dict()) for product in catalog]


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    catalog: ProductCatalog = Depends(get_catalog),
) -> ProductResponse:
    product = catalog.get(product_id)
    if product is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product {product_id} not found",
        )
    return ProductResponse(**product.to_dict())
