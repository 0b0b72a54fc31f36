"""Shared builders for the order scenario used across unit, integration and e2e tests.

The schema here mirrors config/samples/orders.avsc so unit tests do not depend
on the schema loader.
"""
import copy

from pathlib import Path
from typing import Any, Dict

from pipeline_recon.models import FieldKind, RecordSchema, SchemaField


PROJECT_ROOT = Path(__file__).resolve().parent.parent
SAMPLES_DIR = PROJECT_ROOT / "config" / "samples"


def order_schema() -> RecordSchema:
    customer = RecordSchema("Customer", (
        SchemaField("customerId"),
        SchemaField("name"),
        SchemaField("email", nullable=True),
        SchemaField("phone", nullable=True),
        SchemaField("loyaltyTier", nullable=True),
    ))
    item = RecordSchema("OrderItem", (
        SchemaField("productId"),
        SchemaField("productName"),
        SchemaField("quantity", type_name="long"),
        SchemaField("unitPrice", type_name="double"),
        SchemaField("category", nullable=True),
    ))
    address = RecordSchema("Address", (
        SchemaField("street"),
        SchemaField("city"),
        SchemaField("state"),
        SchemaField("zipCode"),
        SchemaField("country"),
    ))
    return RecordSchema("Order", (
        SchemaField("orderId"),
        SchemaField("customer", FieldKind.RECORD, "record", schema=customer),
        SchemaField("items", FieldKind.ARRAY, "array", schema=item),
        SchemaField("orderDate"),
        SchemaField("shippingAddress", FieldKind.RECORD, "record", nullable=True, schema=address),
        SchemaField("paymentMethod"),
        SchemaField("status"),
        SchemaField("metadata", nullable=True),
        SchemaField("totalAmount", type_name="double"),
        SchemaField("taxAmount", type_name="double"),
        SchemaField("discountApplied", type_name="boolean"),
    ), namespace="org.example.orders")


_ORDER_ROW = {
    "orderId": "ORD-001",
    "customer": {
        "customerId": "CUST-001",
        "name": "John Doe",
        "email": "john.doe@example.com",
        "phone": "555-0101",
        "loyaltyTier": "GOLD",
    },
    "items": [
        {
            "productId": "PROD-001",
            "productName": "Wireless Mouse",
            "quantity": 2,
            "unitPrice": 29.99,
            "category": "Electronics",
        }
    ],
    "orderDate": "2024-01-15",
    "shippingAddress": {
        "street": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "country": "USA",
    },
    "paymentMethod": "CREDIT_CARD",
    "status": "PENDING",
    "metadata": None,
    "totalAmount": 59.98,
    "taxAmount": 4.80,
    "discountApplied": False,
}


def order_row(**overrides: Any) -> Dict[str, Any]:
    """Return a fresh flat row for one order; keyword arguments replace top-level fields."""
    row = copy.deepcopy(_ORDER_ROW)
    row.update(overrides)
    return row
