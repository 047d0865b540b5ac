"""
Matching API Routes

Map label text to a catalog product and parse its weight.
"""

from fastapi import APIRouter, Depends

from labelscan.api.dependencies import get_catalog, get_matcher
from labelscan.api.schemas import MatchRequest, MatchResponse
from labelscan.identification.catalog import ProductCatalog
from labelscan.identification.matcher import ProductMatcher
from labelscan.identification.weight import extract_kg


router = APIRouter(prefix="/match", tags=["matching"])


@router.post("", response_model=MatchResponse)
async def match_text(
    request: MatchRequest,
    catalog: ProductCatalog = Depends(get_catalog),
    matcher: ProductMatcher = Depends(get_matcher),
) -> MatchResponse:
    """Match OCR text against the catalog."""
    result = matcher.match(request.text, catalog)
    return MatchResponse(
        product_id=result.product_id,
        product_name=result.product.name if result.product else None,
        method=result.method,
        score=round(result.score, 4),
        kg=extract_kg(request.text),
    )
