from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel, Relationship

ROLE_ADMIN = "admin"
ROLE_COLLABORATOR = "collaborator"
ROLES = (ROLE_ADMIN, ROLE_COLLABORATOR)

# --- User Model ---
class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password_hash: str  # bcrypt hash, never the plain password
    role: str = Field(default=ROLE_COLLABORATOR)  # admin, collaborator

    sales: List["Sale"] = Relationship(back_populates="user")

# --- Customer Model ---
class Customer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    phone: Optional[str] = None

    sales: List["Sale"] = Relationship(back_populates="customer")

# --- Service Type Model ---
class ServiceType(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    default_price: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)

# --- Sale Models (Header & Detail) ---
class Sale(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    # Wall-clock time in America/Sao_Paulo, stored without offset
    occurred_at: datetime = Field(sa_column=Column(DateTime(timezone=False), index=True, nullable=False))
    total: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)

    # Foreign Keys
    customer_id: int = Field(foreign_key="customer.id", index=True)
    customer: Optional[Customer] = Relationship(back_populates="sales")

    user_id: int = Field(foreign_key="user.id", index=True)
    user: Optional[User] = Relationship(back_populates="sales")

    items: List["SaleLineItem"] = Relationship(back_populates="sale")

class SaleLineItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sale_id: int = Field(foreign_key="sale.id", index=True)
    service_type_id: int = Field(foreign_key="servicetype.id")
    charged_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)

    sale: Optional[Sale] = Relationship(back_populates="items")
    service_type: Optional[ServiceType] = Relationship()
