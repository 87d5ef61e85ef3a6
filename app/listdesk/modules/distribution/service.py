from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, TYPE_CHECKING

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from app.listdesk.audit import record_event
from app.listdesk.modules.agents.models import Agent
from app.listdesk.modules.distribution.errors import (
    FileTooLargeError,
    NoAgentsError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from app.listdesk.modules.distribution.models import ListItem
from app.listdesk.modules.distribution.normalize import NormalizedRecord, normalize_rows
from app.listdesk.modules.distribution.parsers import SUPPORTED_EXTENSIONS, normalize_extension, parse_file

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.listdesk.models import User

logger = logging.getLogger(__name__)

_COPY_CHUNK = 64 * 1024


@dataclass(frozen=True)
class Assignment:
    record: NormalizedRecord
    agent_id: int


@dataclass
class UploadResult:
    original_file_name: str
    total_items: int
    dropped_rows: int
    agents: list[Agent]
    items: list[ListItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        by_agent: dict[int, list[ListItem]] = {a.id: [] for a in self.agents}
        for it in self.items:
            by_agent.setdefault(it.agent_id, []).append(it)
        distribution = []
        for row in summarize_distribution(self.agents, {k: len(v) for k, v in by_agent.items()}):
            row["lists"] = [it.to_dict(with_agent=False) for it in by_agent.get(row["agentId"], [])]
            distribution.append(row)
        return {
            "message": "File uploaded and distributed successfully",
            "totalItems": self.total_items,
            "agentsCount": len(self.agents),
            "droppedRows": self.dropped_rows,
            "distribution": distribution,
        }


# ---------- Agents (distribution order) ----------
def list_agents_in_order(s: "Session") -> list[Agent]:
    """Agent listing order used for round-robin and summaries: creation order."""
    return s.query(Agent).order_by(Agent.id.asc()).all()


# ---------- Distributor ----------
def distribute_records(records: Sequence[NormalizedRecord], agents: Sequence[Agent]) -> list[Assignment]:
    """
    Round-robin: record i (parse order) goes to agents[i % len(agents)].
    Each agent receives floor(N/M) or ceil(N/M) records.
    """
    m = len(agents)
    if m == 0:
        raise NoAgentsError("No agents found. Please create agents first.")
    return [Assignment(record=rec, agent_id=agents[i % m].id) for i, rec in enumerate(records)]


# ---------- Persistence ----------
def persist_batch(
    s: "Session",
    assignments: Sequence[Assignment],
    *,
    original_file_name: str,
    uploaded_at: datetime,
) -> list[ListItem]:
    """
    Insert one distribution batch. All rows land in a single flush; on any
    database error the session is rolled back and nothing from the batch remains.
    """
    items = [
        ListItem(
            first_name=a.record.first_name,
            phone=a.record.phone,
            notes=a.record.notes,
            agent_id=a.agent_id,
            original_file_name=original_file_name,
            uploaded_at=uploaded_at,
        )
        for a in assignments
    ]
    try:
        s.add_all(items)
        s.flush()
    except SQLAlchemyError as e:
        s.rollback()
        logger.error("List batch insert failed (file=%s rows=%d): %s", original_file_name, len(items), e)
        raise PersistenceError(f"Failed to save {len(items)} list items.") from e
    return items


def query_list_items(s: "Session", *, agent_id: int | None = None, q: str | None = None) -> list[ListItem]:
    query = s.query(ListItem)
    if agent_id is not None:
        query = query.filter(ListItem.agent_id == agent_id)
    q = (q or "").strip()
    if q:
        # LIKE metacharacters in the search text match literally
        escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        like = f"%{escaped}%"
        query = query.filter(
            or_(
                ListItem.first_name.ilike(like, escape="\\"),
                ListItem.phone.ilike(like, escape="\\"),
                ListItem.notes.ilike(like, escape="\\"),
            )
        )
    return query.order_by(ListItem.uploaded_at.desc(), ListItem.id.asc()).all()


def delete_list_item(s: "Session", item_id: int, *, user: "User | None" = None) -> bool:
    item = s.get(ListItem, item_id)
    if not item:
        return False
    s.delete(item)
    record_event(
        s,
        actor=user,
        action="list_item.delete",
        entity_type="ListItem",
        entity_id=str(item_id),
        metadata={"original_file_name": item.original_file_name, "agent_id": item.agent_id},
    )
    return True


def delete_list_items_by_file(s: "Session", original_file_name: str, *, user: "User | None" = None) -> int:
    """Bulk delete one distribution batch by its file name. Returns the number of rows removed."""
    deleted = (
        s.query(ListItem)
        .filter(ListItem.original_file_name == original_file_name)
        .delete(synchronize_session=False)
    )
    record_event(
        s,
        actor=user,
        action="list_item.delete_file",
        entity_type="ListItem",
        entity_id="bulk",
        metadata={"original_file_name": original_file_name, "deleted": deleted},
    )
    return int(deleted or 0)


def list_uploaded_files(s: "Session") -> list[dict]:
    rows = (
        s.query(
            ListItem.original_file_name,
            func.count(ListItem.id),
            func.max(ListItem.uploaded_at),
        )
        .group_by(ListItem.original_file_name)
        .order_by(func.max(ListItem.uploaded_at).desc())
        .all()
    )
    return [
        {
            "originalFileName": name,
            "count": int(count),
            "lastUploadedAt": last.isoformat() if last else None,
        }
        for name, count, last in rows
    ]


# ---------- Summary ----------
def summarize_distribution(agents: Sequence[Agent], counts: Mapping[int, int]) -> list[dict]:
    """Per-agent item counts in agent listing order. Agents with no items report 0."""
    return [
        {
            "agentId": a.id,
            "agentName": a.name,
            "agentEmail": a.email,
            "count": int(counts.get(a.id, 0)),
        }
        for a in agents
    ]


def count_items_by_agent(s: "Session") -> dict[int, int]:
    rows = s.query(ListItem.agent_id, func.count(ListItem.id)).group_by(ListItem.agent_id).all()
    return {agent_id: int(n) for agent_id, n in rows}


def compute_summary(s: "Session") -> dict:
    agents = list_agents_in_order(s)
    total = s.query(func.count(ListItem.id)).scalar() or 0
    return {
        "totalItems": int(total),
        "agentsCount": len(agents),
        "distribution": summarize_distribution(agents, count_items_by_agent(s)),
    }


# ---------- Ingest pipeline ----------
def _spool_to_tempfile(stream: IO[bytes], *, tmp_dir: str, suffix: str, max_bytes: int) -> str:
    fd, path = tempfile.mkstemp(prefix="upload-", suffix=suffix, dir=tmp_dir)
    written = 0
    try:
        with os.fdopen(fd, "wb") as out:
            while True:
                chunk = stream.read(_COPY_CHUNK)
                if not chunk:
                    break
                written += len(chunk)
                if written > max_bytes:
                    raise FileTooLargeError(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.")
                out.write(chunk)
    except BaseException:
        _remove_quietly(path)
        raise
    return path


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove temporary upload %s: %s", path, e)


def ingest_upload(
    s: "Session",
    stream: IO[bytes],
    original_file_name: str,
    *,
    user: "User | None",
    tmp_dir: str | None = None,
    max_bytes: int = 5 * 1024 * 1024,
) -> UploadResult:
    """
    Parse, normalize, distribute and persist one uploaded file.

    The upload is spooled to a temporary file which is removed on every path.
    Any IngestError leaves no rows behind. The caller commits.
    """
    ext = normalize_extension(original_file_name)
    if ext not in SUPPORTED_EXTENSIONS:
        raise ParseError("Only CSV, XLSX, and XLS files are allowed.")

    # Agent set is read here and the batch inserted later without a shared lock;
    # concurrent uploads may interleave. Accepted approximation.
    agents = list_agents_in_order(s)
    if not agents:
        raise NoAgentsError("No agents found. Please create agents first.")

    path = _spool_to_tempfile(stream, tmp_dir=tmp_dir or tempfile.gettempdir(), suffix=ext, max_bytes=max_bytes)
    try:
        records, dropped = normalize_rows(parse_file(path, ext))
        if not records:
            raise ValidationError("No valid data found in the file")

        assignments = distribute_records(records, agents)
        uploaded_at = datetime.utcnow()
        items = persist_batch(s, assignments, original_file_name=original_file_name, uploaded_at=uploaded_at)
        record_event(
            s,
            actor=user,
            action="list_item.upload",
            entity_type="ListItem",
            entity_id="bulk",
            metadata={
                "original_file_name": original_file_name,
                "rows_created": len(items),
                "rows_dropped": dropped,
                "agents": len(agents),
            },
        )
    finally:
        _remove_quietly(path)

    logger.info(
        "Distributed %d items from %s across %d agents (%d rows dropped)",
        len(items), original_file_name, len(agents), dropped,
    )
    return UploadResult(
        original_file_name=original_file_name,
        total_items=len(items),
        dropped_rows=dropped,
        agents=agents,
        items=items,
    )
