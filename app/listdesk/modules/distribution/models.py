from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.listdesk.models import Base

if TYPE_CHECKING:
    from app.listdesk.modules.agents.models import Agent


class ListItem(Base):
    """One distributed contact record. Immutable once written; removed only by delete."""

    __tablename__ = "list_items"
    __table_args__ = (
        Index("idx_list_items_agent_id", "agent_id"),
        Index("idx_list_items_original_file_name", "original_file_name"),
        Index("idx_list_items_uploaded_at", "uploaded_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # No FK constraint: deleting an agent leaves its items behind with a dangling id.
    agent_id: Mapped[int] = mapped_column(Integer, nullable=False)

    original_file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    agent: Mapped["Agent | None"] = relationship(
        "Agent",
        primaryjoin="foreign(ListItem.agent_id) == Agent.id",
        viewonly=True,
        lazy="selectin",
    )

    def to_dict(self, *, with_agent: bool = True) -> dict:
        d: dict = {
            "id": self.id,
            "firstName": self.first_name,
            "phone": self.phone,
            "notes": self.notes or "",
            "agentId": self.agent_id,
            "originalFileName": self.original_file_name,
            "uploadedAt": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }
        if with_agent:
            a = self.agent
            d["agent"] = {"id": a.id, "name": a.name, "email": a.email} if a else None
        return d
