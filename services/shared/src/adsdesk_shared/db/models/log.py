"""Log model."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from adsdesk_shared.db.base import Base, BigIntId, enum_values, utc_now
from adsdesk_shared.db.enums import LogLevel


class Log(Base):
    """Structured log events written by the DB log handler."""

    __tablename__ = "logs"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    service: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    level: Mapped[LogLevel] = mapped_column(SQLEnum(LogLevel, values_callable=enum_values), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="SET NULL"))
    request_id: Mapped[str | None] = mapped_column(String(64))
    log_metadata: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (
        Index("ix_logs_service_level", "service", "level"),
        Index("ix_logs_timestamp_service", "timestamp", "service"),
    )
