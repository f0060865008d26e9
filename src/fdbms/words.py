"""Amount-in-words rendering for printed bills (Indian numbering: lakh)."""

from decimal import ROUND_HALF_UP, Decimal

_ONES = (
    "", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine",
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen",
    "seventeen", "eighteen", "nineteen",
)
_TENS = ("", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety")


def _in_words(n: int) -> str:
    if n < 20:
        return _ONES[n]
    if n < 100:
        digit = n % 10
        return _TENS[n // 10] + (f" {_ONES[digit]}" if digit else "")
    if n < 1000:
        rest = n % 100
        return f"{_ONES[n // 100]} hundred" + (f" and {_in_words(rest)}" if rest else "")
    if n < 100_000:
        rest = n % 1000
        return f"{_in_words(n // 1000)} thousand" + (f" {_in_words(rest)}" if rest else "")
    rest = n % 100_000
    return f"{_in_words(n // 100_000)} lakh" + (f" {_in_words(rest)}" if rest else "")


def amount_in_words(amount: Decimal) -> str:
    """Spell out a rupee amount, e.g. ``Decimal("1250.50")`` ->
    ``"One Thousand Two Hundred And Fifty Rupees And Fifty Paisa Only"``.

    Negative amounts are spelled by magnitude.
    """
    if amount == 0:
        return "Zero"
    amount = abs(amount)
    rupees = int(amount)
    paisa = int(((amount - rupees) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    if paisa == 100:
        rupees, paisa = rupees + 1, 0

    words = f"{_in_words(rupees) or 'zero'} Rupees"
    if paisa > 0:
        words += f" and {_in_words(paisa)} Paisa"
    words += " only"
    return " ".join(part[0].upper() + part[1:] for part in words.split())
