"""Alphabetic and Roman numeral labels for header counters"""

_ROMAN = (
    (1000, 'M'), (900, 'CM'), (500, 'D'), (400, 'CD'),
    (100, 'C'), (90, 'XC'), (50, 'L'), (40, 'XL'),
    (10, 'X'), (9, 'IX'), (5, 'V'), (4, 'IV'), (1, 'I'),
)


def to_alpha(n: int, upper: bool = False) -> str:
    """1 -> a, 26 -> z, 27 -> aa, 28 -> ab (bijective base 26)."""
    if n <= 0:
        return str(n)
    label = ''
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(ord('a') + rem) + label
    return label.upper() if upper else label


def to_roman(n: int, upper: bool = True) -> str:
    """Roman numeral for 1..3999; other values fall back to decimal."""
    if not 0 < n < 4000:
        return str(n)
    out = []
    for value, numeral in _ROMAN:
        count, n = divmod(n, value)
        out.append(numeral * count)
    label = ''.join(out)
    return label if upper else label.lower()
