from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class UserType(str, Enum):
    admin = "admin"
    business = "business"


class OrderStatus(str, Enum):
    new = "new"
    printed = "printed"
    completed = "completed"


class Order(BaseModel):
    """One call/order record in the shape the business panel shows."""

    id: str
    business_user_id: str | None = None
    business_name: str = "Unknown"
    phone_number: str = "Unknown"
    caller_name: str = "Unknown"
    order: str = "No order details"
    quantity: int = 0
    amount: float | None = None
    raw_transcript: str = ""
    call_duration: int = 0
    call_status: str | None = None
    status: OrderStatus = OrderStatus.new
    created_at: str | None = None
    source: Literal["vapi_call", "orders"] = "vapi_call"


class LoginIn(BaseModel):
    username: str = ""
    password: str = ""
    user_type: UserType = UserType.business


class ClientCreateIn(BaseModel):
    business_name: str = Field(default="", alias="businessName")
    username: str = ""
    password: str = ""
    email: str | None = None
    call_rate: float | None = Field(default=None, alias="callRate")
    auto_print: bool = Field(default=True, alias="autoPrint")
    webhook_url: str | None = Field(default=None, alias="webhookUrl")
    logo_url: str | None = Field(default=None, alias="logoUrl")

    model_config = {"populate_by_name": True}


class ClientUpdateIn(BaseModel):
    business_name: str | None = Field(default=None, alias="businessName")
    call_rate: float | None = Field(default=None, alias="callRate", ge=0)
    auto_print: bool | None = Field(default=None, alias="autoPrint")
    webhook_url: str | None = Field(default=None, alias="webhookUrl")
    is_active: bool | None = Field(default=None, alias="isActive")
    monthly_minute_limit: int | None = Field(default=None, alias="monthlyMinuteLimit", ge=0)

    model_config = {"populate_by_name": True}


class DeleteClientIn(BaseModel):
    user_id: str | None = Field(default=None, alias="userId")

    model_config = {"populate_by_name": True}


class PrintSettings(BaseModel):
    auto_print: bool = True
    printer_type: Literal["thermal", "inkjet", "laser", "dotmatrix"] = "thermal"
    paper_size: Literal["80mm", "58mm", "a4", "a5"] = "80mm"
    include_timestamp: bool = True
    include_customer_info: bool = True
    include_business_logo: bool = False
    print_copies: int = Field(default=1, ge=1, le=3)


class CallEvent(BaseModel):
    """Fields pulled out of a voice-provider webhook payload."""

    caller_number: str = "Unknown"
    caller_name: str | None = None
    call_duration: int = 0
    call_status: str = "completed"
    transcript: str = ""
    order: str | None = None
    quantity: int | None = None
    amount: float | None = None
    raw: dict[str, Any] = Field(default_factory=dict)
