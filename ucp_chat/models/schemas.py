from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


# --- UCP traffic log ---

class LogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    method: str
    url: str
    request_headers: dict[str, str] | None = None
    request_body: Any = None
    response_body: Any = None
    status: int | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class InspectorRow(BaseModel):
    id: str
    method: str
    url: str
    path: str
    status: int | None = None
    failed: bool
    request_headers: dict[str, str] | None = None
    request_body: Any = None
    response_body: Any = None
    timestamp: datetime


# --- Proxy relay ---

class ProxyRequest(BaseModel):
    method: str = "GET"
    path: str = ""
    body: Any = None
    headers: dict[str, str] | None = None
    baseUrl: str | None = None


# --- Transcript ---

class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class RenderKind(str, Enum):
    PLAIN = "plain"
    PRODUCT_LIST = "product-list"
    CHECKOUT_SUMMARY = "checkout-summary"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    render_kind: RenderKind = RenderKind.PLAIN
    payload: Any = None


class Step(str, Enum):
    COLLECTING_NAME = "collecting-name"
    COLLECTING_MERCHANT = "collecting-merchant"
    ACTIVE = "active"


class SessionState(BaseModel):
    step: Step = Step.COLLECTING_NAME
    user_name: str = ""
    merchant_base_url: str = ""
    merchant_display_name: str = "Merchant"
    merchant_description: str = ""


# --- Model function calling ---

class ToolCall(BaseModel):
    id: str = ""
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    call_id: str = ""
    name: str
    response: dict[str, Any]
    is_error: bool = False


class ModelTurn(BaseModel):
    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)


# --- Tool arguments ---

class ItemRef(BaseModel):
    id: str


class LineItemArgs(BaseModel):
    model_config = ConfigDict(extra="allow")

    item: ItemRef | None = None
    item_id: str | None = None
    quantity: int

    @model_validator(mode="after")
    def _references_an_item(self):
        if self.item is None and not self.item_id:
            raise ValueError("line item needs item.id or item_id")
        return self


class BuyerArgs(BaseModel):
    model_config = ConfigDict(extra="allow")

    full_name: str
    email: str


class ShippingAddressArgs(BaseModel):
    full_name: str
    address_line_1: str
    city: str
    state: str
    postal_code: str
    country: str
    phone_number: str | None = None


class CredentialArgs(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    token: str


class PaymentInstrumentArgs(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    handler_id: str
    type: str
    credential: CredentialArgs


class PaymentArgs(BaseModel):
    model_config = ConfigDict(extra="allow")

    selected_instrument_id: str
    instruments: list[PaymentInstrumentArgs]


class ListProductsArgs(BaseModel):
    filters_json: str | None = None


class CreateCheckoutArgs(BaseModel):
    line_items: list[LineItemArgs]
    buyer: BuyerArgs


class UpdateCheckoutAddressArgs(BaseModel):
    checkout_id: str
    shipping_address: ShippingAddressArgs


class UpdateShippingOptionArgs(BaseModel):
    checkout_id: str
    shipping_option_id: str


class CompletePaymentArgs(BaseModel):
    checkout_id: str
    payment: PaymentArgs


# --- Session API schemas ---

class CreateSessionResponse(BaseModel):
    session_id: str
    messages: list[Message]


class SessionInfo(BaseModel):
    session_id: str
    step: Step
    user_name: str
    merchant_display_name: str
    message_count: int


class SessionDetail(BaseModel):
    session_id: str
    state: SessionState
    messages: list[Message]


class ChatRequest(BaseModel):
    message: str


class ChatResponse(BaseModel):
    session_id: str
    step: Step
    messages: list[Message]
