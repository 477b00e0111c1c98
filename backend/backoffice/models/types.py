from __future__ import annotations

from decimal import Decimal

from sqlalchemy.types import BigInteger, TypeDecorator


class ScaledDecimal(TypeDecorator):
    """
    Exact fixed-point column stored as a scaled integer.

    Money is stored in cents (scale=2), quantities in 1/10000 units (scale=4)
    and exact item line totals at scale=6, the same way price_cents columns keep
    money out of floating point. SUM() over these columns happens on integers in
    the database and comes back as an exact Decimal because func.sum/func.coalesce
    inherit the column type.
    """
    impl = BigInteger
    cache_ok = True

    def __init__(self, scale: int = 2, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.scale = scale
        self._factor = Decimal(10) ** scale
        self._quant = Decimal(1).scaleb(-scale)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        scaled = Decimal(value) * self._factor
        if scaled != scaled.to_integral_value():
            raise ValueError(f"value {value} has more than {self.scale} decimal places")
        return int(scaled)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) / self._factor).quantize(self._quant)


def Money():
    return ScaledDecimal(2)


def Quantity():
    return ScaledDecimal(4)
