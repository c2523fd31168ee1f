# storefront/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal
ZERO = Decimal("0")
CENT = Decimal("0.01")

def to_number(x) -> Money:
    """Coerce a stored or submitted amount to Decimal.

    None -> 0, Decimal passes through, anything else is parsed from its
    string form (ints, floats, numeric strings, Decimal-like wrappers).
    Unparsable input counts as 0.
    """
    if x is None:
        return ZERO
    if isinstance(x, Decimal):
        return x
    if isinstance(x, bool):
        return Decimal(int(x))
    try:
        value = Decimal(str(x).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return value if value.is_finite() else ZERO

D = to_number

def round_money(x) -> Money:
    return D(x).quantize(CENT, rounding=ROUND_HALF_UP)

def money_float(x) -> float:
    # JSON payloads carry floats, as the rest of the API does
    return float(D(x))

def format_money(x, symbol="£") -> str:
    return f"{symbol}{round_money(x):.2f}"

def jsonable(obj, rounded=False):
    """Decimals (at any depth in dicts/lists) to floats for JSON responses.

    rounded=True rounds each amount to pence first.
    """
    if isinstance(obj, Decimal):
        return float(round_money(obj) if rounded else obj)
    if isinstance(obj, dict):
        return {k: jsonable(v, rounded) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [jsonable(v, rounded) for v in obj]
    return obj
