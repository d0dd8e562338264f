from decimal import ROUND_HALF_UP, Decimal

TWO_PLACES = Decimal("0.01")

SINGLE_DIGITS = ["Zero", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine"]
TEENS = [
    "Ten",
    "Eleven",
    "Twelve",
    "Thirteen",
    "Fourteen",
    "Fifteen",
    "Sixteen",
    "Seventeen",
    "Eighteen",
    "Nineteen",
]
TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]

# Indian grouping below a crore; the crore count itself is spelled recursively.
CRORE = 10_000_000
SCALES = [(100_000, "Lakh"), (1_000, "Thousand")]


def to_money(value):
    return Decimal(str(value or 0)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def format_inr(value):
    """Render an amount the way receipts print it, e.g. ``Rs. 12,34,567.50``."""
    amount = to_money(value)
    sign = "-" if amount < 0 else ""
    whole, _, fraction = f"{abs(amount):.2f}".partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}Rs. {whole}.{fraction}"


def _words_below_thousand(number):
    if number == 0:
        return ""
    if number < 10:
        return SINGLE_DIGITS[number]
    if number < 20:
        return TEENS[number - 10]
    if number < 100:
        rest = f" {SINGLE_DIGITS[number % 10]}" if number % 10 else ""
        return TENS[number // 10] + rest
    rest = f" {_words_below_thousand(number % 100)}" if number % 100 else ""
    return f"{SINGLE_DIGITS[number // 100]} Hundred{rest}"


def _integer_in_words(number):
    parts = []
    crores, number = divmod(number, CRORE)
    if crores:
        parts.append(f"{_integer_in_words(crores)} Crore")
    for scale, label in SCALES:
        count, number = divmod(number, scale)
        if count:
            parts.append(f"{_words_below_thousand(count)} {label}")
    if number:
        parts.append(_words_below_thousand(number))
    return " ".join(parts)


def amount_in_words(value):
    amount = int(to_money(value).to_integral_value(rounding=ROUND_HALF_UP))
    if amount == 0:
        return "Zero Rupees Only"
    if amount < 0:
        return "Minus " + amount_in_words(-amount)

    return _integer_in_words(amount) + " Rupees Only"
