"""Provider payload builders shared by the tests."""


def make_subscription(subscription_id: str, items: list[tuple[str, int]], customer: str = "cus_123") -> dict:
    """Subscription payload with (item_id, created) items."""
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": "active",
        "items": {
            "object": "list",
            "data": [
                {"id": item_id, "object": "subscription_item", "created": created}
                for item_id, created in items
            ],
        },
    }


def make_invoice_line(line_id: str, invoice_item, nested: bool = False) -> dict:
    """Invoice line; invoice_item None makes it a subscription line.

    nested=True uses the newer API shape, where the invoice item sits under
    parent.invoice_item_details.
    """
    if invoice_item is None:
        return {
            "id": line_id,
            "object": "line_item",
            "parent": {"type": "subscription_item_details", "subscription_item_details": {}},
        }
    if nested:
        return {
            "id": line_id,
            "object": "line_item",
            "parent": {
                "type": "invoice_item_details",
                "invoice_item_details": {"invoice_item": invoice_item},
            },
        }
    return {"id": line_id, "object": "line_item", "invoice_item": invoice_item}


def make_invoice(lines: list[tuple[str, str]], has_more: bool = False, nested: bool = False) -> dict:
    """Upcoming invoice payload with (line_id, invoice_item_id) lines."""
    return {
        "object": "invoice",
        "lines": {
            "object": "list",
            "has_more": has_more,
            "data": [
                make_invoice_line(line_id, invoice_item, nested=nested)
                for line_id, invoice_item in lines
            ],
        },
    }
