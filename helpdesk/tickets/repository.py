from __future__ import annotations

from dataclasses import replace
from typing import Any, Iterable, Protocol, Sequence

import asyncpg

from .errors import InvalidTransition, TicketServiceError
from .models import Attachment, Comment, Priority, Ticket, TicketType
from .state import TicketStatus

_CLOSED_STATUSES = (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value)


class TicketStore(Protocol):
    """Persistence operations the ticket service depends on."""

    async def add(self, ticket: Ticket) -> Ticket:
        ...

    async def get(self, ticket_id: str) -> Ticket | None:
        ...

    async def list_tickets(self, *, status: TicketStatus | None = None) -> list[Ticket]:
        ...

    async def save(self, ticket: Ticket, *, expected_version: int, new_comments: Sequence[Comment] = ()) -> Ticket:
        ...

    async def count_open_by_assignee(self, assignee_ids: Sequence[str]) -> dict[str, int]:
        ...


class InMemoryTicketRepository:
    """Dictionary-backed store used in development and tests."""

    def __init__(self, tickets: Iterable[Ticket] = ()) -> None:
        self._tickets: dict[str, Ticket] = {ticket.id: ticket for ticket in tickets}

    async def add(self, ticket: Ticket) -> Ticket:
        if ticket.id in self._tickets:
            raise TicketServiceError(f"Ticket {ticket.id} already exists")
        self._tickets[ticket.id] = ticket
        return ticket

    async def get(self, ticket_id: str) -> Ticket | None:
        return self._tickets.get(ticket_id)

    async def list_tickets(self, *, status: TicketStatus | None = None) -> list[Ticket]:
        tickets = sorted(self._tickets.values(), key=lambda ticket: ticket.created_at, reverse=True)
        if status is None:
            return tickets
        return [ticket for ticket in tickets if ticket.status == status]

    async def save(self, ticket: Ticket, *, expected_version: int, new_comments: Sequence[Comment] = ()) -> Ticket:
        current = self._tickets.get(ticket.id)
        if current is None or current.version != expected_version:
            raise InvalidTransition(f"Ticket {ticket.id} was modified concurrently")
        stored = replace(ticket, version=expected_version + 1, comments=list(ticket.comments))
        self._tickets[ticket.id] = stored
        return stored

    async def count_open_by_assignee(self, assignee_ids: Sequence[str]) -> dict[str, int]:
        counts = {assignee_id: 0 for assignee_id in assignee_ids}
        for ticket in self._tickets.values():
            if ticket.assignee_id in counts and ticket.status.is_open:
                counts[ticket.assignee_id] += 1
        return counts


class PostgresTicketRepository:
    """Data access layer for ticket records stored in PostgreSQL."""

    _CREATE_TICKETS_SQL = """
    CREATE TABLE IF NOT EXISTS tickets (
        id TEXT PRIMARY KEY,
        requester_id TEXT NOT NULL,
        requester_name TEXT NOT NULL,
        requester_phone TEXT NOT NULL DEFAULT '',
        app TEXT NOT NULL,
        type TEXT NOT NULL,
        issue_code TEXT NOT NULL,
        issue_name TEXT NOT NULL,
        summary TEXT NOT NULL,
        description TEXT NOT NULL,
        status TEXT NOT NULL,
        priority TEXT NOT NULL,
        assignee_id TEXT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        assigned_at TIMESTAMPTZ NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        work_started_at TIMESTAMPTZ NULL,
        resolved_at TIMESTAMPTZ NULL,
        closed_at TIMESTAMPTZ NULL,
        sla_hours DOUBLE PRECISION NOT NULL,
        auto_escalate BOOLEAN NOT NULL DEFAULT FALSE,
        sla_level INTEGER NOT NULL DEFAULT 1,
        is_escalated BOOLEAN NOT NULL DEFAULT FALSE,
        sla_breach_duration_hours DOUBLE PRECISION NULL,
        actual_resolution_hours DOUBLE PRECISION NULL,
        routing_reason TEXT NOT NULL DEFAULT '',
        version INTEGER NOT NULL DEFAULT 0
    )
    """

    _CREATE_COMMENTS_SQL = """
    CREATE TABLE IF NOT EXISTS ticket_comments (
        id TEXT PRIMARY KEY,
        ticket_id TEXT NOT NULL REFERENCES tickets(id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        user_id TEXT NOT NULL,
        user_name TEXT NOT NULL,
        text TEXT NOT NULL,
        is_internal BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL
    )
    """

    _CREATE_ATTACHMENTS_SQL = """
    CREATE TABLE IF NOT EXISTS ticket_attachments (
        id TEXT PRIMARY KEY,
        ticket_id TEXT NOT NULL REFERENCES tickets(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        size INTEGER NOT NULL,
        type TEXT NOT NULL,
        url TEXT NOT NULL
    )
    """

    _TICKET_COLUMNS = (
        "id, requester_id, requester_name, requester_phone, app, type, issue_code, issue_name, summary, "
        "description, status, priority, assignee_id, created_at, assigned_at, updated_at, work_started_at, "
        "resolved_at, closed_at, sla_hours, auto_escalate, sla_level, is_escalated, sla_breach_duration_hours, "
        "actual_resolution_hours, routing_reason, version"
    )

    _INSERT_TICKET_SQL = f"""
    INSERT INTO tickets ({_TICKET_COLUMNS})
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17, $18, $19, $20, $21, $22,
            $23, $24, $25, $26, $27)
    """

    _UPDATE_TICKET_SQL = """
    UPDATE tickets
    SET status = $3,
        priority = $4,
        assignee_id = $5,
        assigned_at = $6,
        updated_at = $7,
        work_started_at = $8,
        resolved_at = $9,
        closed_at = $10,
        sla_level = $11,
        is_escalated = $12,
        sla_breach_duration_hours = $13,
        actual_resolution_hours = $14,
        version = version + 1
    WHERE id = $1 AND version = $2
    RETURNING version
    """

    _SELECT_TICKET_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM tickets
    WHERE id = $1
    """

    _LIST_TICKETS_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM tickets
    ORDER BY created_at DESC
    """

    _LIST_TICKETS_BY_STATUS_SQL = f"""
    SELECT {_TICKET_COLUMNS}
    FROM tickets
    WHERE status = $1
    ORDER BY created_at DESC
    """

    _INSERT_COMMENT_SQL = """
    INSERT INTO ticket_comments (id, ticket_id, position, user_id, user_name, text, is_internal, created_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
    """

    _SELECT_COMMENTS_SQL = """
    SELECT id, ticket_id, position, user_id, user_name, text, is_internal, created_at
    FROM ticket_comments
    WHERE ticket_id = $1
    ORDER BY position ASC
    """

    _INSERT_ATTACHMENT_SQL = """
    INSERT INTO ticket_attachments (id, ticket_id, name, size, type, url)
    VALUES ($1, $2, $3, $4, $5, $6)
    """

    _SELECT_ATTACHMENTS_SQL = """
    SELECT id, ticket_id, name, size, type, url
    FROM ticket_attachments
    WHERE ticket_id = $1
    """

    _COUNT_OPEN_SQL = """
    SELECT assignee_id, COUNT(*) AS open_count
    FROM tickets
    WHERE assignee_id = ANY($1::text[])
      AND status <> ALL($2::text[])
    GROUP BY assignee_id
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(self._CREATE_TICKETS_SQL)
            await connection.execute(self._CREATE_COMMENTS_SQL)
            await connection.execute(self._CREATE_ATTACHMENTS_SQL)

    async def add(self, ticket: Ticket) -> Ticket:
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                await connection.execute(self._INSERT_TICKET_SQL, *self._ticket_params(ticket))
                for position, comment in enumerate(ticket.comments):
                    await self._insert_comment(connection, ticket.id, position, comment)
                for attachment in ticket.attachments:
                    await connection.execute(
                        self._INSERT_ATTACHMENT_SQL,
                        attachment.id,
                        ticket.id,
                        attachment.name,
                        attachment.size,
                        attachment.content_type,
                        attachment.url,
                    )
        return ticket

    async def get(self, ticket_id: str) -> Ticket | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_TICKET_SQL, ticket_id)
            if row is None:
                return None
            return await self._hydrate(connection, row)

    async def list_tickets(self, *, status: TicketStatus | None = None) -> list[Ticket]:
        async with self._pool.acquire() as connection:
            if status is None:
                rows = await connection.fetch(self._LIST_TICKETS_SQL)
            else:
                rows = await connection.fetch(self._LIST_TICKETS_BY_STATUS_SQL, status.value)
            return [await self._hydrate(connection, row) for row in rows]

    async def save(self, ticket: Ticket, *, expected_version: int, new_comments: Sequence[Comment] = ()) -> Ticket:
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                version = await connection.fetchval(
                    self._UPDATE_TICKET_SQL,
                    ticket.id,
                    expected_version,
                    ticket.status.value,
                    ticket.priority.value,
                    ticket.assignee_id,
                    ticket.assigned_at,
                    ticket.updated_at,
                    ticket.work_started_at,
                    ticket.resolved_at,
                    ticket.closed_at,
                    ticket.sla_level,
                    ticket.is_escalated,
                    ticket.sla_breach_duration_hours,
                    ticket.actual_resolution_hours,
                )
                if version is None:
                    raise InvalidTransition(f"Ticket {ticket.id} was modified concurrently")
                first_position = len(ticket.comments) - len(new_comments)
                for offset, comment in enumerate(new_comments):
                    await self._insert_comment(connection, ticket.id, first_position + offset, comment)
        return replace(ticket, version=int(version))

    async def count_open_by_assignee(self, assignee_ids: Sequence[str]) -> dict[str, int]:
        counts = {assignee_id: 0 for assignee_id in assignee_ids}
        if not counts:
            return counts
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._COUNT_OPEN_SQL, list(counts), list(_CLOSED_STATUSES))
        for row in rows:
            counts[str(row["assignee_id"])] = int(row["open_count"])
        return counts

    async def _insert_comment(self, connection: Any, ticket_id: str, position: int, comment: Comment) -> None:
        await connection.execute(
            self._INSERT_COMMENT_SQL,
            comment.id,
            ticket_id,
            position,
            comment.author_id,
            comment.author_name,
            comment.text,
            comment.is_internal,
            comment.created_at,
        )

    async def _hydrate(self, connection: Any, row: Any) -> Ticket:
        comment_rows = await connection.fetch(self._SELECT_COMMENTS_SQL, row["id"])
        attachment_rows = await connection.fetch(self._SELECT_ATTACHMENTS_SQL, row["id"])
        return self._row_to_ticket(
            row,
            comments=[self._row_to_comment(item) for item in comment_rows],
            attachments=tuple(self._row_to_attachment(item) for item in attachment_rows),
        )

    @staticmethod
    def _ticket_params(ticket: Ticket) -> tuple[Any, ...]:
        return (
            ticket.id,
            ticket.requester_id,
            ticket.requester_name,
            ticket.requester_phone,
            ticket.application_id,
            ticket.ticket_type.value,
            ticket.issue_code,
            ticket.issue_name,
            ticket.summary,
            ticket.description,
            ticket.status.value,
            ticket.priority.value,
            ticket.assignee_id,
            ticket.created_at,
            ticket.assigned_at,
            ticket.updated_at,
            ticket.work_started_at,
            ticket.resolved_at,
            ticket.closed_at,
            ticket.sla_hours,
            ticket.auto_escalate,
            ticket.sla_level,
            ticket.is_escalated,
            ticket.sla_breach_duration_hours,
            ticket.actual_resolution_hours,
            ticket.routing_reason,
            ticket.version,
        )

    @staticmethod
    def _row_to_ticket(row: Any, *, comments: list[Comment], attachments: tuple[Attachment, ...]) -> Ticket:
        breach = row["sla_breach_duration_hours"]
        actual = row["actual_resolution_hours"]
        return Ticket(
            id=str(row["id"]),
            requester_id=str(row["requester_id"]),
            requester_name=str(row["requester_name"]),
            requester_phone=str(row["requester_phone"] or ""),
            application_id=str(row["app"]),
            ticket_type=TicketType(str(row["type"])),
            issue_code=str(row["issue_code"]),
            issue_name=str(row["issue_name"]),
            summary=str(row["summary"]),
            description=str(row["description"]),
            status=TicketStatus(str(row["status"])),
            priority=Priority(str(row["priority"])),
            assignee_id=row["assignee_id"],
            created_at=row["created_at"],
            assigned_at=row["assigned_at"],
            updated_at=row["updated_at"],
            work_started_at=row["work_started_at"],
            resolved_at=row["resolved_at"],
            closed_at=row["closed_at"],
            sla_hours=float(row["sla_hours"]),
            auto_escalate=bool(row["auto_escalate"]),
            sla_level=int(row["sla_level"]),
            is_escalated=bool(row["is_escalated"]),
            sla_breach_duration_hours=float(breach) if breach is not None else None,
            actual_resolution_hours=float(actual) if actual is not None else None,
            routing_reason=str(row["routing_reason"] or ""),
            comments=comments,
            attachments=attachments,
            version=int(row["version"]),
        )

    @staticmethod
    def _row_to_comment(row: Any) -> Comment:
        return Comment(
            id=str(row["id"]),
            author_id=str(row["user_id"]),
            author_name=str(row["user_name"]),
            text=str(row["text"]),
            created_at=row["created_at"],
            is_internal=bool(row["is_internal"]),
        )

    @staticmethod
    def _row_to_attachment(row: Any) -> Attachment:
        return Attachment(
            id=str(row["id"]),
            name=str(row["name"]),
            size=int(row["size"]),
            content_type=str(row["type"]),
            url=str(row["url"]),
        )
