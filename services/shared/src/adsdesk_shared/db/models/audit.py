"""Permission audit log model."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from adsdesk_shared.db.base import Base, BigIntId, enum_values, utc_now
from adsdesk_shared.db.enums import AuditAction


class AuditLogEntry(Base):
    """Append-only record of a grant, revoke, or assignment.

    Ids are stored without foreign keys so entries outlive the rows they
    reference.
    """

    __tablename__ = "permission_audit_log"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    role_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    permission_id: Mapped[int | None] = mapped_column(BigInteger)
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, values_callable=enum_values, native_enum=False, length=50), nullable=False
    )
    performed_by: Mapped[int | None] = mapped_column(BigInteger)
    details: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)

    __table_args__ = (Index("ix_permission_audit_log_action_created", "action", "created_at"),)
