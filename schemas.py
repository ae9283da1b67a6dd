"""
Database Schemas

Pydantic models for the MongoDB collections of the recharge store, plus the
request bodies accepted by the admin API.

Collections:
- Category -> "categories"
- Product -> "products"
- Order -> "orders" (written by the consumer app)
- Profile -> "profiles" (written by the consumer app at signup)
- RechargeCode -> "recharge_codes"
- AuthUser -> "authuser" (identity store, same _id as the profile)
"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, EmailStr

ORDER_STATUSES = ("pending", "completed")


class AuthUser(BaseModel):
    email: EmailStr
    name: Optional[str] = None
    password_hash: str
    role: str = Field("user", description="user | admin")
    is_active: bool = True


class Category(BaseModel):
    name: str = Field(..., min_length=1, description="Category display name")
    description: Optional[str] = Field(None, description="Short description")
    icon: str = Field("Package", description="Icon name")
    sort_order: int = Field(0, description="Sort order")
    is_active: bool = Field(True, description="Active status")


class Product(BaseModel):
    category_id: str = Field(..., description="Related category id")
    name: str = Field(..., min_length=1, description="Product name")
    description: Optional[str] = None
    price: float = Field(..., gt=0, description="Unit price")
    currency: str = Field("IQD", description="ISO currency code")
    image_url: Optional[str] = None
    icon: str = Field("Package", description="Icon name")
    filter_tag: Optional[str] = Field(None, description="Quick filter label shown by the app")
    is_active: bool = True


class Order(BaseModel):
    user_id: str
    product_name: str
    product_price: float
    quantity: int = Field(1, ge=1)
    total: float = Field(..., description="Snapshot at order time")
    status: Literal["pending", "completed"] = "pending"
    admin_reply: Optional[str] = None


class Profile(BaseModel):
    full_name: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    wallet_balance: float = Field(0, ge=0)
    is_blocked: bool = False


class RechargeCode(BaseModel):
    code_hash: str = Field(..., description="SHA-256 of the normalized code")
    amount: float = Field(..., gt=0)
    batch_id: str
    expires_at: Optional[datetime] = None
    is_used: bool = False
    used_by: Optional[str] = None
    used_at: Optional[datetime] = None


# ---------- Request bodies ----------
# Fields are optional here; handlers validate them and answer with 400.

class CategoryIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None


class ProductIn(BaseModel):
    category_id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, allow_inf_nan=False)
    currency: Optional[str] = None
    image_url: Optional[str] = None
    icon: Optional[str] = None
    filter_tag: Optional[str] = None
    is_active: Optional[bool] = None


class OrderUpdate(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None
    admin_reply: Optional[str] = None


class RechargeBatchRequest(BaseModel):
    amount: Optional[float] = Field(None, allow_inf_nan=False)
    count: Optional[float] = Field(None, allow_inf_nan=False)
    expires_days: Optional[float] = Field(None, allow_inf_nan=False)


class UserBlockUpdate(BaseModel):
    id: Optional[str] = None
    is_blocked: Any = None
