"""Tenant and user override models."""
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


class TenantModuleOverride(Base):
    """Per-tenant exception that disables a module or tightens its limit."""

    __tablename__ = "tenant_module_overrides"

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
    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # NULL = use the plan limit; 0 = zero quota (independent of is_disabled)
    item_limit: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    updated_by: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    tenant = relationship("Tenant", back_populates="module_overrides")

    __table_args__ = (
        UniqueConstraint("tenant_id", "module_type", name="uq_tenant_module_override"),
        CheckConstraint("item_limit IS NULL OR item_limit >= 0", name="override_limit_non_negative"),
    )


class UserModulePermission(Base):
    """Capability row for one ordinary member on one module."""

    __tablename__ = "user_module_permissions"

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
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    module_type: Mapped[ModuleType] = mapped_column(SQLEnum(ModuleType), nullable=False)
    can_view: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_create: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_edit: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    can_delete: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    granted_by: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    user = relationship("User", back_populates="module_permissions", foreign_keys=[user_id])

    __table_args__ = (
        UniqueConstraint("user_id", "module_type", name="uq_user_module_permission"),
    )
