"""
Retrieve converters: stored value -> application value.

A converter is bound to a single field through ``column(..., retrieve=...)``
and is applied to the raw value fetched from a record before the value is
assigned. Converters are stateless; one instance is created per field when
entity metadata is built and reused for every record.

Usage:
    @dataclass
    class Sample(Entity):
        counts: list[int] = column('counts', retrieve=ListConverter(IntConverter(32)))
        born: datetime.date = column('born', retrieve=DateConverter)
"""
import datetime
import logging
from collections.abc import Callable
from typing import Any

import dateutil.parser
from aerodao.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class Converter:
    """Single-method conversion contract.
    """

    def retrieve(self, db_value: Any) -> Any:
        raise NotImplementedError

    def __call__(self, db_value: Any) -> Any:
        return self.retrieve(db_value)

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


class FunctionConverter(Converter):
    """Wrap a plain callable as a converter.
    """

    def __init__(self, func: Callable[[Any], Any]) -> None:
        self.func = func

    def retrieve(self, db_value: Any) -> Any:
        return self.func(db_value)

    def __repr__(self) -> str:
        return f'FunctionConverter({getattr(self.func, "__name__", self.func)!r})'


class IntConverter(Converter):
    """Collapse a wide stored integer into a Python int.

    With ``bits`` set, the value wraps into a signed integer of that width,
    the way a fixed-width narrowing cast does.
    """

    def __init__(self, bits: int | None = None) -> None:
        if bits is not None and bits <= 0:
            raise ConfigurationError(f'bits must be positive, not {bits}')
        self.bits = bits

    def retrieve(self, db_value: Any) -> Any:
        if db_value is None:
            return None
        value = int(db_value)
        if self.bits is None:
            return value
        mask = (1 << self.bits) - 1
        value &= mask
        if value >= 1 << (self.bits - 1):
            value -= 1 << self.bits
        return value

    def __repr__(self) -> str:
        return f'IntConverter(bits={self.bits})'


class FloatConverter(Converter):

    def retrieve(self, db_value: Any) -> Any:
        if db_value is None:
            return None
        return float(db_value)


class ListConverter(Converter):
    """Apply an item converter to each element of a stored list.
    """

    def __init__(self, item: Any) -> None:
        self.item = as_converter(item)

    def retrieve(self, db_value: Any) -> Any:
        if db_value is None:
            return None
        return [self.item.retrieve(v) for v in db_value]

    def __repr__(self) -> str:
        return f'ListConverter({self.item!r})'


def _parse_datetime(db_value: Any) -> datetime.datetime | None:
    if db_value is None:
        return None
    if isinstance(db_value, datetime.datetime):
        return db_value
    if isinstance(db_value, datetime.date):
        return datetime.datetime.combine(db_value, datetime.time())
    if isinstance(db_value, int | float):
        return datetime.datetime.fromtimestamp(db_value, tz=datetime.timezone.utc)
    return dateutil.parser.parse(str(db_value))


class DateTimeConverter(Converter):
    """Parse ISO strings (via dateutil) or epoch seconds into datetimes.
    """

    def retrieve(self, db_value: Any) -> Any:
        return _parse_datetime(db_value)


class DateConverter(Converter):
    """Like DateTimeConverter, time-of-day dropped.
    """

    def retrieve(self, db_value: Any) -> Any:
        value = _parse_datetime(db_value)
        return value.date() if value is not None else None


def as_converter(ref: Any) -> Converter:
    """Resolve a converter reference.

    Accepts a Converter subclass (instantiated once), a Converter instance
    or any callable taking the stored value.
    """
    if isinstance(ref, Converter):
        return ref
    if isinstance(ref, type):
        if not issubclass(ref, Converter):
            raise ConfigurationError(f'{ref.__name__} is not a Converter subclass')
        try:
            return ref()
        except TypeError as exc:
            raise ConfigurationError(f'Cannot instantiate converter {ref.__name__}: {exc}') from exc
    if callable(ref):
        return FunctionConverter(ref)
    raise ConfigurationError(f'Invalid converter reference: {ref!r}')
