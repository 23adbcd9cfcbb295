from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime


class QuoteBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    text: str = Field(..., min_length=1, max_length=1000, description="Quote text")
    author: str = Field(..., min_length=1, max_length=100, description="Quote author")


class QuoteCreate(QuoteBase):
    """Schema for submitting a new quote"""
    category: Optional[str] = Field(None, max_length=50, description="Quote category")
    tags: List[str] = Field(default_factory=list, description="Free-form tags")


class QuoteUpdate(BaseModel):
    """Schema for editing an existing quote; only provided fields change"""
    model_config = ConfigDict(str_strip_whitespace=True)

    text: Optional[str] = Field(None, min_length=1, max_length=1000)
    author: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, max_length=50)
    tags: Optional[List[str]] = None


class QuoteResponse(BaseModel):
    """Public view of a quote"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    author: str
    user_id: Optional[int] = None
    category: Optional[str] = None
    tags: List[str] = []
    likes: int = 0
    is_approved: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QuoteAdminResponse(QuoteResponse):
    """Moderation view, includes submitter metadata"""
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int, shown: int) -> "Pagination":
        offset = (page - 1) * limit
        return cls(
            current_page=page,
            total_pages=(total + limit - 1) // limit,
            total=total,
            has_next=offset + shown < total,
            has_prev=page > 1,
        )


class QuoteListResponse(BaseModel):
    quotes: List[QuoteResponse]
    pagination: Pagination


class AuthorCount(BaseModel):
    author: str
    count: int


class QuoteStatsResponse(BaseModel):
    total_quotes: int
    today_quotes: int
    top_authors: List[AuthorCount]
    category_stats: dict
