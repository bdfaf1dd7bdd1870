# rental_app/models/category.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime


class Category(Document):
    name: str
    description: Optional[str] = None
    icon: str = "package"
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Settings:
        name = "categories"
        indexes = [
            IndexModel([("name", ASCENDING)], name="category_name_unique_index", unique=True),
            IndexModel([("updated_at", DESCENDING)], name="category_updated_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        """Skema untuk membuat kategori baru."""
        name: str = Field(..., min_length=1, max_length=100)
        description: Optional[str] = None
        icon: Optional[str] = Field(None, max_length=50)

    class Update(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=100)
        description: Optional[str] = None
        icon: Optional[str] = Field(None, max_length=50)

    class Response(BaseModel):
        """Skema untuk response API."""
        id: str
        name: str
        description: Optional[str] = None
        icon: str
        created_at: datetime
        updated_at: datetime
        class Config: from_attributes=True
