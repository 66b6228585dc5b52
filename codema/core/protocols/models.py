from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from codema.core.database.base import BaseModel


class ProtocolSequence(BaseModel):
    """
    Counter per protocol type and year.

    last_sequence is the last number handed out and goes back to zero on an
    administrative reset; total_issued only ever grows.
    """

    __tablename__ = "protocol_sequences"

    protocol_type: Mapped[str] = mapped_column(String(10), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_issued: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("protocol_type", "year", name="uq_protocol_sequence_type_year"),
    )
