"""
Document Schemas for the Restaurant Portal

Each Pydantic model maps to a MongoDB collection
- Account -> accounts (identity records, owned by the session module)
- UserProfile -> users
- MenuItem -> menu_items
- Order -> orders
- Reservation -> reservations
- Table -> tables
- Feedback -> feedback
- DailyMenu -> daily_menus
"""

import json
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal['customer', 'admin']

PREFERENCE_OPTIONS = [
    'Vegetarian', 'Vegan', 'Pescatarian', 'Keto', 'Paleo',
    'Gluten-Free', 'Dairy-Free', 'Low-Carb', 'Spicy',
]

ALLERGY_OPTIONS = [
    'Peanuts', 'Tree Nuts', 'Milk', 'Eggs', 'Fish',
    'Shellfish', 'Soy', 'Wheat', 'Gluten',
]

MENU_CATEGORIES = [
    'Appetizers', 'Main Courses', 'Seafood', 'Vegetarian', 'Desserts', 'Beverages',
]

MENU_TAGS = ['Spicy', 'Vegan', 'Gluten-Free', 'Organic', "Chef's Special", 'Seasonal']


class UserContext(BaseModel):
    """Stored serialized on the profile as ``user_context``."""
    preferences: List[str] = []
    allergies: List[str] = []
    favorite_items: List[str] = []

    def dumps(self) -> str:
        return json.dumps(self.model_dump())

    @classmethod
    def loads(cls, raw: Optional[str]) -> "UserContext":
        if not raw:
            return cls()
        return cls.model_validate(json.loads(raw))


class Account(BaseModel):
    """Identity record; the only place a user's display name lives."""
    email: EmailStr
    name: str = Field(..., min_length=1)
    password_hash: str


class UserProfile(BaseModel):
    user_id: str = Field(..., description="Links to accounts._id")
    email: str = ''
    username: str = ''
    role: Role = 'customer'
    phone: Optional[str] = None
    user_context: str = Field(default_factory=lambda: UserContext().dumps())


class MenuItem(BaseModel):
    name: str
    description: str = ''
    price: float = Field(..., ge=0)
    category: str
    image: Optional[str] = None
    available: bool = True
    tags: List[str] = []


class OrderLine(BaseModel):
    id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class Order(BaseModel):
    user_id: str
    items: str = Field(..., description="JSON-serialized list of OrderLine")
    total_price: float = Field(..., ge=0)
    status: Literal['pending', 'preparing', 'delivered', 'cancelled'] = 'pending'


class Reservation(BaseModel):
    user_id: str
    date: str
    time: str
    guest_count: int = Field(..., ge=1, le=10)
    special_requests: str = ''
    table_id: str
    status: Literal['pending', 'confirmed'] = 'pending'


class Table(BaseModel):
    table_number: int
    capacity: int = Field(..., ge=1)
    status: str = 'available'


class Feedback(BaseModel):
    user_id: str
    order_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ''


class DailyMenu(BaseModel):
    date: str = Field(..., description="ISO date, YYYY-MM-DD")
    title: str = ''
    description: str = ''
    item_ids: List[str] = []


# ---------------------- Request bodies ----------------------
# Required fields default to empty; the data access layer reports what is missing.

class SignupBody(BaseModel):
    email: str = ''
    password: str = ''
    name: str = ''
    confirm_password: Optional[str] = None


class LoginBody(BaseModel):
    email: str = ''
    password: str = ''


class ReservationBody(BaseModel):
    date: str = ''
    time: str = ''
    guest_count: int = 2
    special_requests: str = ''


class ProfileUpdate(BaseModel):
    """Recognized profile fields. ``name`` goes to the identity record,
    ``preferences``/``allergies`` into the serialized user context."""
    model_config = ConfigDict(extra='forbid')

    name: Optional[str] = None
    phone: Optional[str] = None
    preferences: Optional[List[str]] = None
    allergies: Optional[List[str]] = None


class CartItemBody(BaseModel):
    item_id: str


class CartQuantityBody(BaseModel):
    quantity: int


class FeedbackBody(BaseModel):
    order_id: str
    rating: int
    comment: str = ''
