"""Content-addressed payload storage kept apart from the message log."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from parley_broker.db.session import Base
from parley_broker.db.time import utcnow


class Blob(Base):
    """Uploaded attachment or voice note bytes keyed by their BLAKE3 digest."""

    __tablename__ = "blob"

    payload_ref: Mapped[str] = mapped_column(String(80), primary_key=True)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    byte_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
