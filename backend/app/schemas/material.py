from pydantic import BaseModel, field_validator
from typing import List, Optional, Union
from datetime import datetime


class MaterialOut(BaseModel):
    id: int
    title: str
    topics: List[str] = []
    category: str
    description: Optional[str] = None
    keywords: List[str] = []
    price: str
    currency: str = "USD"
    content_id: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: str
    created_by: str
    downloads: int = 0
    purchases: int = 0
    revenue: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MaterialUpdate(BaseModel):
    """All fields optional. topics / keywords accept a list or a comma-separated string."""
    title: Optional[str] = None
    topics: Optional[Union[List[str], str]] = None
    category: Optional[str] = None
    description: Optional[str] = None
    keywords: Optional[Union[List[str], str]] = None
    price: Optional[str] = None
    currency: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def price_as_text(cls, v):
        # JSON clients send 9.99 as a number
        if isinstance(v, (int, float)):
            return str(v)
        return v
