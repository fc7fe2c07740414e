# blogcms/schemas.py
from typing import Optional
from pydantic import BaseModel, Field


class CategoryCreate(BaseModel):
    # Presence of name/title is checked by the registry so that a missing
    # field is reported as a 400 with the service's own message.
    name: Optional[str] = Field(None, max_length=100)
    title: Optional[str] = Field(None, max_length=200)
    keywords: Optional[str] = Field(None, max_length=1000)
    description: Optional[str] = Field(None, max_length=5000)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    title: Optional[str] = Field(None, max_length=200)
    keywords: Optional[str] = Field(None, max_length=1000)
    description: Optional[str] = Field(None, max_length=5000)


class SearchRequest(BaseModel):
    search: str = Field('', max_length=200)
