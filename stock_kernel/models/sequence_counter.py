"""
Module: stock_kernel.models.sequence_counter
Responsibility: Named counter rows handing out strictly increasing integers.
    Lots take their receipt sequence from here, so lots created in the same
    clock instant still have a defined creation order.
Architecture position: Kernel > Models.  Written only by SequenceService.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class SequenceCounterModel(Base):
    """One row per named sequence, holding the last value handed out."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
