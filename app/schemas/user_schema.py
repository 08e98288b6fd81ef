# app/schemas/user_schema.py

from pydantic import Field, field_validator
from datetime import datetime
from schemas.chat_schema import CamelModel


class UserCreate(CamelModel):
    """Schema for registering a username in the directory"""
    username: str = Field(..., min_length=1, max_length=255)

    @field_validator('username')
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Strip whitespace; usernames cannot be blank"""
        v = v.strip()
        if not v:
            raise ValueError('Username cannot be empty or only whitespace')
        return v


class UserResponse(CamelModel):
    """Schema for reading a user"""
    id: int
    username: str
    created_at: datetime


class UserListResponse(CamelModel):
    """Schema for paginated user listing"""
    users: list[UserResponse]
    total: int
    limit: int
    offset: int
