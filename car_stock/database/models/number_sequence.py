"""Counters behind human readable sale and receipt numbers."""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from car_stock.database.base import Base, UUIDMixin, create_table_args


class NumberSequence(Base, UUIDMixin):
    """
    Last issued number for a prefix within a period.

    ``month`` is 0 for sequences that reset yearly.
    """

    __tablename__ = "number_sequences"

    prefix: Mapped[str] = mapped_column(String(10), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = create_table_args(
        UniqueConstraint("prefix", "year", "month", name="uq_number_sequences_period"),
        comment="Document number counters",
    )
