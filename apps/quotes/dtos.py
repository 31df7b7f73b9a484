"""Schemas for Quotes app."""
from typing import List

from ninja import Schema


class QuoteOut(Schema):
    text: str
    author: str
    source: str
    tags: List[str] = []


class QuoteData(Schema):
    quote: QuoteOut


class QuoteResponse(Schema):
    success: bool = True
    data: QuoteData


class CategoryData(Schema):
    quotes: List[QuoteOut]
    category: str
    count: int


class CategoryResponse(Schema):
    success: bool = True
    data: CategoryData


class MultipleData(Schema):
    quotes: List[QuoteOut]
    count: int
    requested: int


class MultipleResponse(Schema):
    success: bool = True
    data: MultipleData


class InvalidCategoryResponse(Schema):
    success: bool = False
    error: str
    allowed_categories: List[str]
