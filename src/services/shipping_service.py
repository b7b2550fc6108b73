"""State-based shipping charges and order type classification."""

from dataclasses import dataclass

from src.core.config import get_settings

ORDER_TYPE_TN = "DH Online TN"
ORDER_TYPE_OTHER_STATE = "DH Online OS"

# Free-shipping threshold value meaning "never free"
FREE_SHIPPING_DISABLED = -1


@dataclass(frozen=True)
class ShippingQuote:
    """Shipping charge for one cart and destination."""

    charges: float
    is_free: bool
    is_tamil_nadu: bool
    free_shipping_threshold: float
    remaining_for_free_shipping: float


def is_tamil_nadu(state: str | None) -> bool:
    """Check whether a free-text state name refers to Tamil Nadu.

    Case and whitespace are ignored, so "Tamil  Nadu", "tamilnadu" and "TN"
    all match.
    """
    if not state:
        return False
    normalized = "".join(state.lower().split())
    return (
        "tamilnadu" in normalized
        or normalized == "tn"
        or ("tamil" in normalized and "nadu" in normalized)
    )


def order_type_for_state(state: str | None) -> str:
    """Return the ledger order type for a delivery state."""
    return ORDER_TYPE_TN if is_tamil_nadu(state) else ORDER_TYPE_OTHER_STATE


def calculate_shipping(cart_total: float, state: str | None) -> ShippingQuote:
    """Calculate the shipping charge for a cart total and delivery state.

    Args:
        cart_total: Cart total before shipping.
        state: Delivery state as typed by the customer.

    Returns:
        ShippingQuote: Charge plus the free-shipping context shown at checkout.
    """
    settings = get_settings()
    in_tamil_nadu = is_tamil_nadu(state)

    if in_tamil_nadu:
        base_charge = settings.tamil_nadu_shipping
        threshold = settings.tamil_nadu_free_shipping
    else:
        base_charge = settings.other_state_shipping
        threshold = settings.other_state_free_shipping

    free_disabled = threshold == FREE_SHIPPING_DISABLED
    is_free = not free_disabled and cart_total >= threshold

    return ShippingQuote(
        charges=0 if is_free else base_charge,
        is_free=is_free,
        is_tamil_nadu=in_tamil_nadu,
        free_shipping_threshold=threshold,
        remaining_for_free_shipping=0 if free_disabled else max(0, threshold - cart_total),
    )
