"""System component catalogue reported on by the public status page."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.database import Base

# (name, display_name) in display order
DEFAULT_COMPONENTS: tuple[tuple[str, str], ...] = (
    ("api", "API"),
    ("auth", "Authentication"),
    ("database", "Database"),
    ("booking", "Booking System"),
    ("billing", "Billing & Payments"),
    ("notifications", "Notifications"),
    ("reports", "Reports & Analytics"),
)


class SystemComponent(Base):
    __tablename__ = "system_components"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
