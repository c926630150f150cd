import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_total_price(proposal) -> int:
    """
    Midpoint of the price range. Multi-service proposals with more than one
    line item use the summed line-item ranges instead of price_low/high.
    """
    line_items = proposal.line_items or []
    if len(line_items) > 1:
        total_low = sum(item.get('priceLow') or 0 for item in line_items)
        total_high = sum(item.get('priceHigh') or 0 for item in line_items)
        return round_half_up((total_low + total_high) / 2)
    return round_half_up((proposal.price_low + proposal.price_high) / 2)
