from pydantic import BaseModel
from typing import Optional


class SearchResult(BaseModel):
    id: str
    type: str
    title: str
    subtitle: Optional[str] = None
    url: str
    icon: str
    avatar: Optional[str] = None
