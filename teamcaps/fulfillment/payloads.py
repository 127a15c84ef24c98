"""Pure mapping from internal order records to Printify payloads."""

from decimal import Decimal

from .conf import get_setting

DEFAULT_PLACEMENT = {
    "position": "front",
    "x": 0.5,
    "y": 0.5,
    "scale": 1.0,
    "angle": 0,
}


def _text(value) -> str:
    # provider rejects null for optional string fields
    return "" if value is None else str(value)


def placement_for(design) -> dict:
    placement = dict(DEFAULT_PLACEMENT)
    overrides = design.print_placement or {}
    placement.update({k: v for k, v in overrides.items() if k in DEFAULT_PLACEMENT})
    return placement


def build_print_areas(design, variant_ids) -> list:
    placement = placement_for(design)
    return [{
        "variant_ids": list(variant_ids),
        "placeholders": [{
            "position": placement["position"],
            "images": [{
                "id": design.artwork_image_id,
                "x": placement["x"],
                "y": placement["y"],
                "scale": placement["scale"],
                "angle": placement["angle"],
            }],
        }],
    }]


def build_inline_print_areas(design) -> dict:
    placement = placement_for(design)
    return {
        placement["position"]: [{
            "id": design.artwork_image_id,
            "x": placement["x"],
            "y": placement["y"],
            "scale": placement["scale"],
            "angle": placement["angle"],
        }],
    }


def build_address(order, address) -> dict:
    return {
        "first_name": _text(address.first_name or order.first_name),
        "last_name": _text(address.last_name or order.last_name),
        "email": _text(order.email),
        "phone": _text(order.phone),
        "country": _text(address.country or get_setting("DEFAULT_COUNTRY")),
        "region": _text(address.state),
        "address1": _text(address.address1),
        "address2": _text(address.address2),
        "city": _text(address.city),
        "zip": _text(address.zip),
    }


def build_line_item(item, design, variant, product_id=None) -> dict:
    if product_id:
        return {
            "product_id": str(product_id),
            "variant_id": variant.id,
            "quantity": item.quantity,
        }
    return {
        "blueprint_id": design.blueprint_id,
        "print_provider_id": design.print_provider_id,
        "variant_id": variant.id,
        "quantity": item.quantity,
        "print_areas": build_inline_print_areas(design),
    }


def build_order_payload(order, items, address, designs, variants, product_ids=None) -> dict:
    """
    Provider order payload.

    ``designs`` and ``variants`` map design pk to the design and its selected
    CatalogVariant; ``product_ids`` maps design pk to a two-phase product id.
    """
    product_ids = product_ids or {}
    line_items = [
        build_line_item(item, designs[item.design_id], variants[item.design_id],
                        product_ids.get(item.design_id))
        for item in items
    ]
    return {
        "external_id": str(order.id),
        "label": order.customer_name or str(order.id),
        "line_items": line_items,
        "shipping_method": int(get_setting("SHIPPING_METHOD")),
        "send_shipping_notification": False,
        "address_to": build_address(order, address),
    }


def price_in_cents(amount) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


def build_product_payload(design, variants) -> dict:
    """Two-phase product payload enabling the selected variants at the design's selling price."""
    price = price_in_cents(design.selling_price)
    variant_ids = [v.id for v in variants]
    return {
        "title": design.name,
        "description": design.description or "",
        "blueprint_id": design.blueprint_id,
        "print_provider_id": design.print_provider_id,
        "variants": [{"id": vid, "price": price, "enabled": True} for vid in variant_ids],
        "print_areas": build_print_areas(design, variant_ids),
    }
