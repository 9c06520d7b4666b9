"""
Currencies enabled for deals and orders.
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Currency(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "currencies"

    code: Mapped[str] = mapped_column(String(3), unique=True, nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class CurrencyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = ""
    symbol: str = ""
    name: str = ""
    is_active: bool = True


class CurrencyUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    code: str | None = None
    symbol: str | None = None
    name: str | None = None
    is_active: bool | None = None


class CurrencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    symbol: str
    name: str
    is_active: bool
