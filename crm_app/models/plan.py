"""Plan catalog models."""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    String, Boolean, Integer, DateTime, ForeignKey, Text,
    Enum as SQLEnum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import uuid

from crm_app.core.database import Base
from crm_app.core.enums import ModuleType


class Plan(Base):
    """Subscription tier defining which modules a tenant gets."""

    __tablename__ = "plans"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    modules = relationship("PlanModule", back_populates="plan", cascade="all, delete-orphan")
    tenants = relationship("Tenant", back_populates="plan")


class PlanModule(Base):
    """Entitlement of one module within a plan."""

    __tablename__ = "plan_modules"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    plan_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    module_type: Mapped[ModuleType] = mapped_column(SQLEnum(ModuleType), nullable=False)
    is_included: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # NULL = unlimited
    item_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    can_create: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_edit: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_view: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    plan = relationship("Plan", back_populates="modules")

    __table_args__ = (
        UniqueConstraint("plan_id", "module_type", name="uq_plan_module_type"),
        CheckConstraint("item_limit IS NULL OR item_limit >= 0", name="item_limit_non_negative"),
    )
