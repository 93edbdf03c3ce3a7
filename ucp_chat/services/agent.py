import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from ucp_chat.models.schemas import (
    CompletePaymentArgs,
    CreateCheckoutArgs,
    ListProductsArgs,
    Message,
    RenderKind,
    Role,
    ToolCall,
    ToolResult,
    UpdateCheckoutAddressArgs,
    UpdateShippingOptionArgs,
)
from ucp_chat.services.exceptions import OrchestratorError
from ucp_chat.services.llm import ChatModel
from ucp_chat.services.ucp import UCPClient

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful shopping assistant for a UCP merchant. Your goal is to help users browse products and complete their purchase.

You are connected to {merchant_name}. Merchant description: {merchant_description}
The shopper's name is {user_name}.

1. DISCOVERY: At the start of the conversation, analyze the merchant's name and description to infer what categories of products they might have.
2. FILTERING: Use the 'list_products' tool to browse. Pass a JSON string to 'filters_json' based on your inference (e.g., '{{"category": "men"}}').
3. CHECKOUT: When a checkout session reaches the 'ready_for_complete' status, do not ask the user for a payment token. Inform them you are using a mock payment and call 'complete_payment' with 'pi_1', 'mock_payment', 'card', and the success token credential. Always guide the user through providing their address and selecting shipping options first."""

UCP_TOOLS: list[dict] = [
    {
        "name": "list_products",
        "description": (
            "List products from the merchant catalog. Provide filters as a JSON string of key-value "
            "pairs based on the merchant's supported categories or attributes discovered in their "
            "description (e.g., '{\"category\": \"dresses\"}')."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "filters_json": {
                    "type": "string",
                    "description": "A JSON string of filters (e.g., '{\"category\": \"men\"}')",
                },
            },
        },
    },
    {
        "name": "create_checkout",
        "description": "Start the checkout process for one or more items.",
        "input_schema": {
            "type": "object",
            "properties": {
                "line_items": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "item": {
                                "type": "object",
                                "properties": {"id": {"type": "string"}},
                                "required": ["id"],
                            },
                            "quantity": {"type": "integer"},
                        },
                        "required": ["item", "quantity"],
                    },
                },
                "buyer": {
                    "type": "object",
                    "properties": {
                        "full_name": {"type": "string"},
                        "email": {"type": "string"},
                    },
                    "required": ["full_name", "email"],
                },
            },
            "required": ["line_items", "buyer"],
        },
    },
    {
        "name": "update_checkout_address",
        "description": "Update the shipping address for a checkout session.",
        "input_schema": {
            "type": "object",
            "properties": {
                "checkout_id": {"type": "string"},
                "shipping_address": {
                    "type": "object",
                    "properties": {
                        "full_name": {"type": "string"},
                        "address_line_1": {"type": "string"},
                        "city": {"type": "string"},
                        "state": {"type": "string"},
                        "postal_code": {"type": "string"},
                        "country": {"type": "string"},
                        "phone_number": {"type": "string"},
                    },
                    "required": ["full_name", "address_line_1", "city", "state", "postal_code", "country"],
                },
            },
            "required": ["checkout_id", "shipping_address"],
        },
    },
    {
        "name": "update_shipping_option",
        "description": "Select a shipping option for a checkout session.",
        "input_schema": {
            "type": "object",
            "properties": {
                "checkout_id": {"type": "string"},
                "shipping_option_id": {"type": "string"},
            },
            "required": ["checkout_id", "shipping_option_id"],
        },
    },
    {
        "name": "complete_payment",
        "description": (
            "Complete the checkout by providing payment info. Use 'mock_payment' for handler_id, "
            "'card' for type, and a credential object with type 'token' and token 'success_token'. "
            "Note: selected_instrument_id must match the 'id' field of one of the instruments (e.g., 'pi_1')."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "checkout_id": {"type": "string"},
                "payment": {
                    "type": "object",
                    "properties": {
                        "selected_instrument_id": {
                            "type": "string",
                            "description": "Must match the 'id' of the selected instrument.",
                        },
                        "instruments": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "id": {"type": "string", "description": "Unique identifier for this instrument (e.g., 'pi_1')"},
                                    "handler_id": {"type": "string", "description": "The payment handler ID (e.g., 'mock_payment')"},
                                    "type": {"type": "string", "description": "The type of payment (e.g., 'card')"},
                                    "credential": {
                                        "type": "object",
                                        "properties": {
                                            "type": {"type": "string", "description": "Credential type, usually 'token'"},
                                            "token": {"type": "string", "description": "The token value, e.g., 'success_token'"},
                                        },
                                        "required": ["type", "token"],
                                    },
                                },
                                "required": ["id", "handler_id", "type", "credential"],
                            },
                        },
                    },
                    "required": ["selected_instrument_id", "instruments"],
                },
            },
            "required": ["checkout_id", "payment"],
        },
    },
]

# Tool results that are also shown in the transcript, with how to render them
RICH_RESULTS = {
    "list_products": ("Fetched products", RenderKind.PRODUCT_LIST),
    "create_checkout": ("Checkout session created", RenderKind.CHECKOUT_SUMMARY),
}

Emit = Callable[[Message], None]


def build_system_prompt(merchant_name: str, merchant_description: str, user_name: str) -> str:
    return SYSTEM_PROMPT.format(
        merchant_name=merchant_name,
        merchant_description=merchant_description or "(none provided)",
        user_name=user_name,
    )


class ShoppingAgent:
    """Runs the model's function calls against the merchant until it answers in plain text."""

    def __init__(self, ucp: UCPClient, model: ChatModel, system_prompt: str, max_tool_rounds: int = 25):
        self.ucp = ucp
        self.max_tool_rounds = max_tool_rounds
        self.chat = model.start_chat(system_prompt, UCP_TOOLS)
        self._tools: dict[str, tuple[type[BaseModel], Callable[[Any], Awaitable[Any]]]] = {
            "list_products": (ListProductsArgs, self.list_products),
            "create_checkout": (CreateCheckoutArgs, self.create_checkout),
            "update_checkout_address": (UpdateCheckoutAddressArgs, self.update_checkout_address),
            "update_shipping_option": (UpdateShippingOptionArgs, self.update_shipping_option),
            "complete_payment": (CompletePaymentArgs, self.complete_payment),
        }

    async def run(self, text: str, emit: Emit) -> str:
        """Send one user message and drive the tool loop. Returns the model's final text."""
        turn = await self.chat.send_message(text)
        rounds = 0
        while turn.tool_calls:
            rounds += 1
            if rounds > self.max_tool_rounds:
                self.chat.discard_pending_tool_calls()
                raise OrchestratorError(f"Gave up after {self.max_tool_rounds} rounds of tool calls")

            results = []
            for call in turn.tool_calls:
                result = await self.execute(call)
                results.append(result)
                if not result.is_error and call.name in RICH_RESULTS:
                    content, render_kind = RICH_RESULTS[call.name]
                    emit(Message(
                        role=Role.SYSTEM,
                        content=content,
                        render_kind=render_kind,
                        payload=result.response["content"],
                    ))
            turn = await self.chat.send_tool_results(results)
        return turn.text

    async def execute(self, call: ToolCall) -> ToolResult:
        """Run a single tool call. Failures come back as error results, never as exceptions."""
        tool = self._tools.get(call.name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {call.name}")
            return ToolResult(
                call_id=call.id,
                name=call.name,
                response={"error": f"Unknown tool: {call.name}"},
                is_error=True,
            )

        args_model, handler = tool
        try:
            args = args_model.model_validate(call.arguments)
            data = await handler(args)
        except Exception as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            return ToolResult(call_id=call.id, name=call.name, response={"error": str(e)}, is_error=True)
        return ToolResult(call_id=call.id, name=call.name, response={"content": data})

    # -- Tool handlers --

    async def list_products(self, args: ListProductsArgs) -> Any:
        filters: dict = {}
        if args.filters_json:
            try:
                parsed = json.loads(args.filters_json)
            except ValueError as e:
                logger.warning(f"Failed to parse filters_json {args.filters_json!r}: {e}")
            else:
                if isinstance(parsed, dict):
                    filters = parsed
        return await self.ucp.get_catalog(filters)

    async def create_checkout(self, args: CreateCheckoutArgs) -> Any:
        line_items = [li.model_dump(exclude_none=True) for li in args.line_items]
        return await self.ucp.create_checkout("USD", line_items, args.buyer.model_dump())

    async def update_checkout_address(self, args: UpdateCheckoutAddressArgs) -> Any:
        address = args.shipping_address
        name_parts = address.full_name.split(" ")
        destination = {
            "id": "home_address",
            "first_name": name_parts[0],
            "last_name": " ".join(name_parts[1:]),
            "street_address": address.address_line_1,
            "address_locality": address.city,
            "address_region": address.state,
            "postal_code": address.postal_code,
            "address_country": address.country,
        }
        if address.phone_number:
            destination["phone_number"] = address.phone_number

        fulfillment = {
            "methods": [
                {
                    "id": "ship_to_home",
                    "type": "shipping",
                    "destinations": [destination],
                    "selected_destination_id": "home_address",
                },
            ],
        }
        return await self.ucp.update_checkout(args.checkout_id, {"fulfillment": fulfillment})

    async def update_shipping_option(self, args: UpdateShippingOptionArgs) -> Any:
        checkout = await self.ucp.get_checkout(args.checkout_id)
        existing = (checkout.get("fulfillment") if isinstance(checkout, dict) else None) or {}

        methods = existing.get("methods") or [
            {
                "id": "ship_to_home",
                "type": "shipping",
                "destinations": [],
                "selected_destination_id": "home_address",
            },
        ]
        fulfillment = {
            **existing,
            "methods": [
                {
                    **method,
                    "groups": [
                        {**group, "selected_option_id": args.shipping_option_id}
                        for group in (method.get("groups") or [{"id": "group_all"}])
                    ],
                }
                for method in methods
            ],
        }
        return await self.ucp.update_checkout(args.checkout_id, {"fulfillment": fulfillment})

    async def complete_payment(self, args: CompletePaymentArgs) -> Any:
        return await self.ucp.complete_checkout(args.checkout_id, args.payment.model_dump(exclude_unset=True))
