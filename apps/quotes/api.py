"""
Public quote endpoints. No authentication required.
"""
from ninja import Router
from ninja.errors import HttpError
from django.http import HttpRequest

from .dtos import CategoryResponse, InvalidCategoryResponse, MultipleResponse, QuoteResponse
from .services import ALLOWED_CATEGORIES, quote_service

router = Router(tags=["Quotes"])

MAX_QUOTES = 10


@router.get("/random", response=QuoteResponse, auth=None)
def random_quote(request: HttpRequest):
    return {"success": True, "data": {"quote": quote_service.motivational()}}


@router.get("/daily", response=QuoteResponse, auth=None)
def daily_quote(request: HttpRequest):
    return {"success": True, "data": {"quote": quote_service.daily()}}


@router.get(
    "/category/{category}",
    response={200: CategoryResponse, 400: InvalidCategoryResponse},
    auth=None,
)
def quotes_by_category(request: HttpRequest, category: str):
    if category not in ALLOWED_CATEGORIES:
        return 400, {
            "success": False,
            "error": "Invalid category",
            "allowed_categories": ALLOWED_CATEGORIES,
        }

    quotes = quote_service.by_category(category)
    if not quotes:
        raise HttpError(503, "Quote service temporarily unavailable")

    return {
        "success": True,
        "data": {"quotes": quotes, "category": category, "count": len(quotes)},
    }


@router.get("/multiple", response=MultipleResponse, auth=None)
def multiple_quotes(request: HttpRequest, count: int = 5):
    """Up to ten motivational quotes, one provider round-trip each."""
    requested = min(max(count, 1), MAX_QUOTES)
    quotes = [quote_service.motivational() for _ in range(requested)]
    return {
        "success": True,
        "data": {"quotes": quotes, "count": len(quotes), "requested": requested},
    }
