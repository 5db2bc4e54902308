"""Event registry: the season schedule and its completion flags."""

import logging
from datetime import date
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from oneanddone.config import pool_today
from oneanddone.errors import ConflictError, EventNotFound, StorageError, ValidationError
from oneanddone.models.season import Event

logger = logging.getLogger(__name__)

EVENT_ACTIVE = "active"
EVENT_UPCOMING = "upcoming"

_REQUIRED_EVENT_FIELDS = ("id", "name", "start_date", "end_date", "purse", "segment", "week_number")


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def _as_number(value, field: str, cast=int):
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}: {value!r}")
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}: {value!r}")


def _parse_event_record(record: dict) -> dict:
    """Check and coerce one schedule record into Event column values."""
    missing = [f for f in _REQUIRED_EVENT_FIELDS if record.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Event record missing fields: {', '.join(missing)}")

    week_number = _as_number(record["week_number"], "week_number")
    if week_number < 1:
        raise ValidationError(f"Invalid week_number: {week_number}")
    purse = _as_number(record["purse"], "purse")
    multiplier = _as_number(record.get("multiplier") or 1.0, "multiplier", float)
    if purse < 0 or multiplier < 0:
        raise ValidationError(f"Purse and multiplier must not be negative for {record['name']}")

    return {
        "id": str(record["id"]),
        "name": record["name"],
        "course_name": record.get("course_name"),
        "week_number": week_number,
        "start_date": _as_date(record["start_date"]),
        "end_date": _as_date(record["end_date"]),
        "purse": purse,
        "multiplier": multiplier,
        "segment": str(record["segment"]),
        "event_type": record.get("event_type") or "regular",
        "is_completed": bool(record.get("is_completed")),
        "winner": record.get("winner"),
    }


class EventService:
    """Service for reading and completing scheduled events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, event_id: str) -> Optional[Event]:
        """Get an event by ID."""
        result = await self.db.execute(
            select(Event)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_week(self, week_number: int) -> Optional[Event]:
        """Get the event scheduled for a week."""
        result = await self.db.execute(
            select(Event)
            .where(Event.week_number == week_number)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def schedule(self) -> list[Event]:
        """All events ordered by week."""
        result = await self.db.execute(
            select(Event)
            .order_by(Event.week_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def complete_past_events(self, today: Optional[date] = None) -> int:
        """Mark every event that ended before today as completed.

        Only ever flips the flag false -> true, so running it repeatedly or
        alongside other writes is harmless. Returns the number of events
        newly completed.
        """
        today = today or pool_today()
        try:
            result = await self.db.execute(
                update(Event)
                .where(Event.end_date < today)
                .where(Event.is_completed == False)  # noqa: E712
                .values(is_completed=True)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Auto-completion failed: {e}")
            raise StorageError("Failed to complete past events", str(e))

        count = result.rowcount or 0
        if count:
            logger.info(f"Auto-completed {count} past event(s) before {today}")
        return count

    async def current(self, today: Optional[date] = None) -> tuple[Event, str]:
        """The event being played now, else the next one to be played.

        Returns (event, "active" | "upcoming").
        """
        today = today or pool_today()
        await self.complete_past_events(today)

        result = await self.db.execute(
            select(Event)
            .where(Event.start_date <= today)
            .where(Event.end_date >= today)
            .where(Event.is_completed == False)  # noqa: E712
            .order_by(Event.start_date)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        active = result.scalar_one_or_none()
        if active:
            return active, EVENT_ACTIVE

        result = await self.db.execute(
            select(Event)
            .where(Event.start_date > today)
            .where(Event.is_completed == False)  # noqa: E712
            .order_by(Event.start_date)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        upcoming = result.scalar_one_or_none()
        if upcoming:
            return upcoming, EVENT_UPCOMING

        raise EventNotFound("no remaining events this season")

    async def mark_completed(self, event_id: str, winner: Optional[str] = None) -> Event:
        """Explicitly complete an event, optionally recording its winner."""
        event = await self.get(event_id)
        if not event:
            raise EventNotFound(event_id)

        values = {"is_completed": True}
        if winner:
            values["winner"] = winner
        try:
            await self.db.execute(
                update(Event).where(Event.id == event_id).values(**values)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to complete {event_id}: {e}")
            raise StorageError(f"Failed to complete event {event_id}", str(e))

        await self.db.refresh(event)
        logger.info(f"Event completed: {event.name} (winner: {event.winner or 'TBD'})")
        return event

    async def upsert_events(self, records: Iterable[dict]) -> int:
        """Load or refresh the season schedule from collaborator records.

        The whole batch is validated before anything is written. Events may
        be renumbered, including swapping weeks with each other. A completed
        event stays completed even if the record says otherwise.
        """
        parsed = [_parse_event_record(record) for record in records]
        for field in ("id", "week_number"):
            values = [p[field] for p in parsed]
            repeated = sorted({v for v in values if values.count(v) > 1}, key=str)
            if repeated:
                raise ValidationError(f"Duplicate {field} in schedule: {', '.join(map(str, repeated))}")

        try:
            result = await self.db.execute(
                select(Event)
                .where(Event.id.in_([p["id"] for p in parsed]))
                .execution_options(populate_existing=True)
            )
            existing = {event.id: event for event in result.scalars().all()}

            # Park renumbered events on placeholder weeks so swaps clear the unique index
            moving = [
                existing[p["id"]] for p in parsed
                if p["id"] in existing and existing[p["id"]].week_number != p["week_number"]
            ]
            for placeholder, event in enumerate(moving, start=1):
                event.week_number = -placeholder
            if moving:
                await self.db.flush()

            for p in parsed:
                event = existing.get(p["id"])
                if event is None:
                    event = Event(id=p["id"], is_completed=False)
                    self.db.add(event)

                is_completed = p.pop("is_completed")
                winner = p.pop("winner")
                for field, value in p.items():
                    setattr(event, field, value)
                if is_completed:
                    event.is_completed = True
                if winner:
                    event.winner = winner
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Schedule load clashed with stored events: {e}")
            raise ConflictError("Schedule assigns a week that already belongs to another event")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Schedule load failed: {e}")
            raise StorageError("Failed to load schedule", str(e))

        logger.info(f"Loaded {len(parsed)} event(s) into the schedule")
        return len(parsed)
