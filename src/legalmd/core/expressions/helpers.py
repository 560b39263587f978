"""Closed registry of template helpers (dates, numbers, strings, arithmetic)

Helpers are plain functions looked up by name at evaluation time:

    {{formatDate(effective_date, "legal")}}
    {{formatCurrency(fee, "USD")}}
    {{titleCase(client.name)}}

A helper raises ValueError/TypeError on input it cannot handle; the evaluator
turns that into an unresolved expression.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from legalmd.core.values import to_text

HelperType = Callable[..., Any]


class HelperRegistry:
    """Named set of helper functions.

        registry = HelperRegistry()

        @registry.register("shout")
        def shout(text):
            return str(text).upper()
    """

    def __init__(self) -> None:
        self._helpers: Dict[str, HelperType] = {}

    def register(self, name: str) -> Callable[[HelperType], HelperType]:
        def decorator(func: HelperType) -> HelperType:
            self._helpers[name] = func
            return func
        return decorator

    def add(self, name: str, func: HelperType) -> None:
        self._helpers[name] = func

    def get(self, name: str) -> Optional[HelperType]:
        return self._helpers.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._helpers

    def list_helpers(self) -> List[str]:
        return sorted(self._helpers)


registry = HelperRegistry()


# --- coercion ---

def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return datetime.fromisoformat(text).date()
    raise ValueError(f"Invalid date: {value!r}")


def _to_number(value: Any) -> Optional[float]:
    """parseFloat-style coercion; None when the value is not numeric."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        m = re.match(r'\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?', value)
        if m:
            return float(m.group())
    return None


def _require_number(value: Any) -> float:
    num = _to_number(value)
    if num is None:
        raise ValueError(f"Not a number: {value!r}")
    return num


def _fixed(num: float, decimals: int) -> str:
    """Fixed-point text with half-up rounding."""
    decimals = max(int(decimals), 0)
    quantum = Decimal(1).scaleb(-decimals)
    try:
        return str(Decimal(str(num)).quantize(quantum, rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise ValueError(f"Cannot format {num!r}") from e


def _group(digits: str, separator: str) -> str:
    sign = '-' if digits.startswith('-') else ''
    digits = digits.lstrip('-')
    return sign + re.sub(r'\B(?=(\d{3})+(?!\d))', separator, digits)


# --- dates ---

_MONTHS = ['January', 'February', 'March', 'April', 'May', 'June', 'July',
           'August', 'September', 'October', 'November', 'December']
_DAYS = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']

NAMED_DATE_FORMATS = {
    'legal': 'Do day of MMMM, YYYY',
    'long': 'MMMM D, YYYY',
    'short': 'MMM D, YYYY',
    'formal': 'dddd, MMMM Do, YYYY',
    'ISO': 'YYYY-MM-DD',
    'US': 'MM/DD/YYYY',
    'EU': 'DD/MM/YYYY',
}

_DATE_TOKEN_RE = re.compile(r'YYYY|YY|MMMM|MMM|MM|M|dddd|ddd|Do|DD|D')


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f"{n}{suffix}"


@registry.register('addDays')
def add_days(value: Any, days: Any) -> date:
    return _to_date(value) + timedelta(days=int(_require_number(days)))


@registry.register('addMonths')
def add_months(value: Any, months: Any) -> date:
    """Add calendar months, clamping to the last day of the target month."""
    d = _to_date(value)
    total = d.month - 1 + int(_require_number(months))
    year, month = d.year + total // 12, total % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@registry.register('addYears')
def add_years(value: Any, years: Any) -> date:
    return add_months(value, int(_require_number(years)) * 12)


@registry.register('formatDate')
def format_date(value: Any, fmt: str = 'YYYY-MM-DD') -> str:
    d = _to_date(value)
    pattern = NAMED_DATE_FORMATS.get(fmt, fmt)
    tokens = {
        'YYYY': f"{d.year:04d}",
        'YY': f"{d.year % 100:02d}",
        'MMMM': _MONTHS[d.month - 1],
        'MMM': _MONTHS[d.month - 1][:3],
        'MM': f"{d.month:02d}",
        'M': str(d.month),
        'dddd': _DAYS[d.weekday()],
        'ddd': _DAYS[d.weekday()][:3],
        'Do': ordinal(d.day),
        'DD': f"{d.day:02d}",
        'D': str(d.day),
    }
    return _DATE_TOKEN_RE.sub(lambda m: tokens[m.group()], pattern)


# --- numbers ---

@registry.register('formatInteger')
def format_integer(value: Any, separator: str = ',') -> str:
    num = _to_number(value)
    if num is None:
        return to_text(value)
    return _group(str(int(num // 1)), separator)


@registry.register('formatNumber')
def format_number(value: Any, decimals: int = 2, decimal_separator: str = '.', thousand_separator: str = ',') -> str:
    num = _to_number(value)
    if num is None:
        return to_text(value)
    whole, _, frac = _fixed(num, decimals).partition('.')
    whole = _group(whole, thousand_separator)
    return f"{whole}{decimal_separator}{frac}" if frac else whole


@registry.register('formatPercent')
def format_percent(value: Any, decimals: int = 2, symbol: bool = True) -> str:
    """0.155 -> '15.50%'."""
    num = _to_number(value)
    if num is None:
        return to_text(value)
    formatted = _fixed(Decimal(str(num)) * 100, decimals)
    return f"{formatted}%" if symbol else formatted


_CURRENCY_SYMBOLS = {'EUR': '€', 'USD': '$', 'GBP': '£'}


@registry.register('formatCurrency')
def format_currency(value: Any, currency: str = 'EUR', decimals: int = 2) -> str:
    num = _to_number(value)
    if num is None:
        return to_text(value)
    whole, _, frac = _fixed(num, decimals).partition('.')
    formatted = _group(whole, ',') + (f".{frac}" if frac else '')
    symbol = _CURRENCY_SYMBOLS.get(currency, currency)
    if currency == 'EUR':
        return f"{formatted} {symbol}"
    return f"{symbol}{formatted}"


@registry.register('formatEuro')
def format_euro(value: Any, decimals: int = 2) -> str:
    return format_currency(value, 'EUR', decimals)


@registry.register('formatDollar')
def format_dollar(value: Any, decimals: int = 2) -> str:
    return format_currency(value, 'USD', decimals)


@registry.register('formatPound')
def format_pound(value: Any, decimals: int = 2) -> str:
    return format_currency(value, 'GBP', decimals)


_ONES = ['', 'one', 'two', 'three', 'four', 'five', 'six', 'seven', 'eight', 'nine']
_TEENS = ['ten', 'eleven', 'twelve', 'thirteen', 'fourteen', 'fifteen',
          'sixteen', 'seventeen', 'eighteen', 'nineteen']
_TENS = ['', '', 'twenty', 'thirty', 'forty', 'fifty', 'sixty', 'seventy', 'eighty', 'ninety']


def _hundreds(n: int) -> str:
    words = []
    if n > 99:
        words += [_ONES[n // 100], 'hundred']
        n %= 100
    if n > 19:
        words.append(_TENS[n // 10])
        n %= 10
    elif n > 9:
        words.append(_TEENS[n - 10])
        n = 0
    if n > 0:
        words.append(_ONES[n])
    return ' '.join(words)


def _integer_words(n: int) -> str:
    if n >= 1_000_000:
        return f"{_integer_words(n // 1_000_000)} million {_integer_words(n % 1_000_000)}".strip()
    if n >= 1000:
        return f"{_hundreds(n // 1000)} thousand {_hundreds(n % 1000)}".strip()
    return _hundreds(n)


@registry.register('numberToWords')
def number_to_words(value: Any) -> str:
    """1500 -> 'one thousand five hundred'; cents are appended as 'and N cents'."""
    num = _to_number(value)
    if num is None:
        return to_text(value)
    if num == 0:
        return 'zero'
    if num < 0:
        return 'negative ' + number_to_words(-num)
    whole = int(num)
    cents = int(Decimal(str(num - whole)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP) * 100)
    words = _integer_words(whole) if whole else 'zero'
    if cents > 0:
        words += f" and {_hundreds(cents)} cents"
    return words


@registry.register('round')
def round_number(value: Any, decimals: int = 0) -> float:
    num = _require_number(value)
    rounded = float(_fixed(num, decimals))
    return int(rounded) if int(decimals) <= 0 else rounded


# --- strings ---

_SMALL_WORDS = {'a', 'an', 'and', 'as', 'at', 'but', 'by', 'for', 'if', 'in', 'nor',
                'of', 'on', 'or', 'so', 'the', 'to', 'up', 'yet'}


def _text(value: Any) -> str:
    return '' if value is None else to_text(value)


@registry.register('capitalize')
def capitalize(value: Any) -> str:
    text = _text(value)
    return text[:1].upper() + text[1:].lower()


@registry.register('capitalizeWords')
def capitalize_words(value: Any) -> str:
    return re.sub(r'\b\w', lambda m: m.group().upper(), _text(value).lower())


@registry.register('upper')
def upper(value: Any) -> str:
    return _text(value).upper()


@registry.register('lower')
def lower(value: Any) -> str:
    return _text(value).lower()


@registry.register('titleCase')
def title_case(value: Any) -> str:
    """Capitalize words except short connectives; first and last word always capitalized."""
    words = _text(value).split(' ')
    out = []
    for i, word in enumerate(words):
        if i == 0 or i == len(words) - 1 or word.lower() not in _SMALL_WORDS:
            out.append(capitalize(word))
        else:
            out.append(word.lower())
    return ' '.join(out)


@registry.register('kebabCase')
def kebab_case(value: Any) -> str:
    text = re.sub(r'([a-z])([A-Z])', r'\1-\2', _text(value))
    return re.sub(r'[\s_]+', '-', text).lower()


@registry.register('snakeCase')
def snake_case(value: Any) -> str:
    text = re.sub(r'([a-z])([A-Z])', r'\1_\2', _text(value))
    return re.sub(r'[\s-]+', '_', text).lower()


@registry.register('camelCase')
def camel_case(value: Any) -> str:
    text = re.sub(r'([a-z])([A-Z])', r'\1 \2', _text(value))
    text = re.sub(r'([A-Z])([A-Z][a-z])', r'\1 \2', text)
    words = [w for w in re.split(r'[\s_-]+', text) if w]
    return ''.join(w.lower() if i == 0 else w[:1].upper() + w[1:].lower() for i, w in enumerate(words))


@registry.register('pascalCase')
def pascal_case(value: Any) -> str:
    camel = camel_case(value)
    return camel[:1].upper() + camel[1:]


@registry.register('truncate')
def truncate(value: Any, length: Any, suffix: str = '...') -> str:
    text = _text(value)
    length = int(_require_number(length))
    if len(text) <= length:
        return text
    return text[:max(length - len(suffix), 0)] + suffix


@registry.register('clean')
def clean(value: Any) -> str:
    return re.sub(r'\s+', ' ', _text(value)).strip()


@registry.register('pluralize')
def pluralize(word: Any, count: Any, plural: Optional[str] = None) -> str:
    word = _text(word)
    if _to_number(count) == 1:
        return word
    if plural:
        return plural
    if re.search(r's$', word, re.I):
        return word
    if re.search(r'[^aeiou]y$', word, re.I):
        return word[:-1] + 'ies'
    if re.search(r'(x|z|s|sh|ch)$', word, re.I):
        return word + 'es'
    return word + 's'


@registry.register('padStart')
def pad_start(value: Any, length: Any, char: str = ' ') -> str:
    text = _text(value)
    length = int(_require_number(length))
    if not char:
        return text
    missing = max(length - len(text), 0)
    return (char * missing)[:missing] + text


@registry.register('padEnd')
def pad_end(value: Any, length: Any, char: str = ' ') -> str:
    text = _text(value)
    length = int(_require_number(length))
    if not char:
        return text
    missing = max(length - len(text), 0)
    return text + (char * missing)[:missing]


@registry.register('contains')
def contains(value: Any, substring: Any, case_sensitive: bool = False) -> bool:
    text, sub = _text(value), _text(substring)
    if not text or not sub:
        return False
    if case_sensitive:
        return sub in text
    return sub.lower() in text.lower()


@registry.register('replaceAll')
def replace_all(value: Any, search: Any, replacement: Any) -> str:
    return _text(value).replace(_text(search), _text(replacement))


@registry.register('initials')
def initials(value: Any) -> str:
    return ''.join(word[:1].upper() for word in _text(value).split(' '))


@registry.register('concat')
def concat(*values: Any) -> str:
    return ''.join(_text(v) for v in values)


@registry.register('default')
def default(value: Any, fallback: Any) -> Any:
    return fallback if value is None or value == '' else value


# --- arithmetic ---

def _result(value: float) -> float:
    return int(value) if isinstance(value, float) and value.is_integer() else value


@registry.register('add')
def add(a: Any, b: Any) -> float:
    return _result(_require_number(a) + _require_number(b))


@registry.register('subtract')
def subtract(a: Any, b: Any) -> float:
    return _result(_require_number(a) - _require_number(b))


@registry.register('multiply')
def multiply(a: Any, b: Any) -> float:
    return _result(_require_number(a) * _require_number(b))


@registry.register('divide')
def divide(a: Any, b: Any) -> float:
    divisor = _require_number(b)
    if divisor == 0:
        raise ValueError("Division by zero")
    return _result(_require_number(a) / divisor)


@registry.register('modulo')
def modulo(a: Any, b: Any) -> float:
    divisor = _require_number(b)
    if divisor == 0:
        raise ValueError("Division by zero")
    return _result(_require_number(a) % divisor)


@registry.register('power')
def power(base: Any, exponent: Any) -> float:
    return _result(_require_number(base) ** _require_number(exponent))
