"""Cached usage counters."""
from datetime import datetime, timezone
from sqlalchemy import String, Integer, DateTime, ForeignKey, Enum as SQLEnum, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
import uuid

from crm_app.core.database import Base
from crm_app.core.enums import ModuleType


class UsageRecord(Base):
    """Denormalized item count per tenant and module. Advisory only."""

    __tablename__ = "usage_records"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    module_type: Mapped[ModuleType] = mapped_column(SQLEnum(ModuleType), nullable=False)
    current_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_calculated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "module_type", name="uq_usage_tenant_module"),
    )
