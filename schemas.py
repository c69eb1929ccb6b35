from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

# Each collection class name determines collection name (lowercased).
# Documents are stored snake_case; the HTTP boundary speaks camelCase.

class User(BaseModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="Salted password hash")
    is_admin: bool = Field(False, description="Grants access to admin routes")


class Review(BaseModel):
    user: str = Field(..., description="Id of the reviewing user")
    name: str = Field(..., description="Display name of the reviewer")
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""
    created_at: Optional[datetime] = None


class Product(BaseModel):
    user: Optional[str] = Field(None, description="Id of the admin who created it")
    name: str
    price: float = Field(..., ge=0)
    brand: str
    category: str
    count_in_stock: int = Field(0, ge=0)
    description: str = ""
    image: str = Field(..., description="Public URL of the uploaded image")
    reviews: List[Review] = Field(default_factory=list)
    num_reviews: int = 0
    rating: float = Field(0, ge=0, le=5)
    version: int = 0


class ProductFields(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    brand: str
    category: str
    count_in_stock: int = Field(0, ge=0)
    description: str = ""


# Request / response bodies

class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(ApiModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginRequest(ApiModel):
    email: EmailStr
    password: str


class ProfileUpdateRequest(ApiModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class UserUpdateRequest(ApiModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    is_admin: Optional[bool] = None


class ReviewRequest(ApiModel):
    rating: int
    comment: str = ""


class UserOut(ApiModel):
    id: str
    name: str
    email: EmailStr
    is_admin: bool = False


class LoginResponse(UserOut):
    token: str


class ReviewOut(ApiModel):
    user: str
    name: str
    rating: int
    comment: str = ""
    created_at: Optional[datetime] = None


class ProductOut(ApiModel):
    id: str
    user: Optional[str] = None
    name: str
    price: float
    brand: str
    category: str
    count_in_stock: int
    description: str = ""
    image: str
    reviews: List[ReviewOut] = Field(default_factory=list)
    num_reviews: int = 0
    rating: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageResponse(ApiModel):
    message: str
