"""
User and admin profile schemas
"""
from datetime import datetime
from typing import List, Optional, Union

from pydantic import EmailStr

from app.schemas.base import CamelModel
from app.schemas.product import ProductResponse


class ProfileCreate(CamelModel):
    cognito_id: str
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None


class AdminResponse(CamelModel):
    id: int
    cognito_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    created_at: Optional[datetime] = None


class UserResponse(AdminResponse):
    favorites: List[ProductResponse] = []


class AuthUserResponse(CamelModel):
    user_role: str
    user_info: Union[AdminResponse, UserResponse]
