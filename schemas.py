import datetime as dt
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# Per-transaction ceiling; keeps any user's running totals well inside a 64-bit integer.
MAX_AMOUNT = 10**12


def _strip(value):
    return value.strip() if isinstance(value, str) else value


# ----------------------------
# AUTH SCHEMAS
# ----------------------------

class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        return _strip(value)


class GoogleExchange(BaseModel):
    token: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    google_id: Optional[str] = None
    github_id: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    status: str
    message: str
    user: UserResponse
    token: str
    type: str = "bearer"


# ----------------------------
# TRANSACTION SCHEMAS
# ----------------------------

class TransactionCreate(BaseModel):
    type: Literal["income", "expense"]
    category: str = Field(..., min_length=1, max_length=255)
    amount: int = Field(..., ge=0, le=MAX_AMOUNT)
    note: Optional[str] = None
    date: dt.date


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    type: str
    category: str
    amount: int
    note: Optional[str] = None
    date: dt.date
    created_at: Optional[dt.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionList(BaseModel):
    status: str = "success"
    transactions: List[TransactionResponse]


class TransactionCreated(BaseModel):
    status: str = "success"
    message: str
    transaction: TransactionResponse


# ----------------------------
# DERIVED VIEWS
# ----------------------------

class SummaryResponse(BaseModel):
    balance: int
    income: int
    expense: int


class MonthGroupResponse(BaseModel):
    key: str
    year: int
    month: int
    expanded: bool
    summary: SummaryResponse
    transactions: List[TransactionResponse]


class MonthGroupList(BaseModel):
    status: str = "success"
    groups: List[MonthGroupResponse]
