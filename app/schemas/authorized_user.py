# app/schemas/authorized_user.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class AuthorizedUserOut(BaseModel):
    id: int
    name: str
    image_url: Optional[str]
    created_at: datetime
    updated_at: datetime
    is_active: bool

    class Config:
        from_attributes = True
