from __future__ import annotations

from sqlalchemy import Float, Integer
from sqlalchemy.orm import DeclarativeBase, InstrumentedAttribute, Mapped, mapped_column

from domain.currencies import Symbol

SQLITE_INTEGER_MIN = -(2**63)
SQLITE_INTEGER_MAX = 2**63 - 1


class Base(DeclarativeBase):
    pass


class RateOrm(Base):
    """One scheduled tick. ``id`` is the Unix timestamp of the fetch, rates are USD-anchored."""

    __tablename__ = "rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    USD: Mapped[float | None] = mapped_column(Float, nullable=True, default=1.0, server_default="1")
    SGD: Mapped[float | None] = mapped_column(Float, nullable=True)
    EUR: Mapped[float | None] = mapped_column(Float, nullable=True)
    BTC: Mapped[float | None] = mapped_column(Float, nullable=True)
    DOGE: Mapped[float | None] = mapped_column(Float, nullable=True)
    ETH: Mapped[float | None] = mapped_column(Float, nullable=True)

    @classmethod
    def column_for(cls, symbol: Symbol) -> InstrumentedAttribute[float | None]:
        return getattr(cls, Symbol(symbol).value)
