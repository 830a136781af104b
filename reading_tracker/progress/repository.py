from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from copy import deepcopy
from datetime import date
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, Integer, String, create_engine, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .errors import StorageFailure
from .models import (
    NewReadingEvent,
    NewReadingGoal,
    OutboxEntry,
    OutboxOperation,
    ReadingEvent,
    ReadingGoal,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


class UserModel(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, nullable=False)


class ReadingEventModel(Base):
    __tablename__ = "reading_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    partition_number = Column(Integer, index=True, nullable=False)
    pages_read = Column(Integer, nullable=False)
    start_page = Column(Integer)
    end_page = Column(Integer)
    created_at = Column(DateTime, nullable=False)


class ReadingGoalModel(Base):
    __tablename__ = "reading_goals"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, index=True, nullable=False)
    daily_target = Column(Integer, nullable=False)
    weekly_target = Column(Integer, nullable=False)
    total_pages = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


class OutboxModel(Base):
    __tablename__ = "outbox"
    id = Column(Integer, primary_key=True, autoincrement=True)
    operation = Column(Enum(OutboxOperation), nullable=False)
    payload_json = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False)


def _newest_first(event: ReadingEvent):
    return (event.date, event.created_at, event.id)


class ProgressRepository:
    """
    Storage contract for reading events, goals, users and the offline outbox.
    Every backend must return the same records in the same order for the same
    writes; aggregation only ever talks to this interface.

    Orderings:
      - list_events / list_recent_events / list_events_by_partition:
        date desc, then created_at desc, then id desc.
      - list_events_by_date_range: date asc, then created_at asc, then id asc.
    """

    # User operations
    def create_user(self, username: str) -> User:
        raise NotImplementedError

    def get_user(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_user_by_username(self, username: str) -> Optional[User]:
        raise NotImplementedError

    # Reading events
    def append_event(self, event: NewReadingEvent) -> ReadingEvent:
        raise NotImplementedError

    def list_events(self, user_id: int) -> List[ReadingEvent]:
        raise NotImplementedError

    def list_events_by_date_range(self, user_id: int, start: date, end: date) -> List[ReadingEvent]:
        raise NotImplementedError

    def list_events_by_partition(self, user_id: int, partition_number: int) -> List[ReadingEvent]:
        raise NotImplementedError

    def list_recent_events(self, user_id: int, limit: int) -> List[ReadingEvent]:
        raise NotImplementedError

    # Reading goals
    def create_goal(self, goal: NewReadingGoal) -> ReadingGoal:
        raise NotImplementedError

    def get_goal(self, goal_id: int) -> Optional[ReadingGoal]:
        raise NotImplementedError

    def get_active_goal(self, user_id: int) -> Optional[ReadingGoal]:
        raise NotImplementedError

    def update_goal(
        self,
        goal_id: int,
        daily_target: Optional[int] = None,
        weekly_target: Optional[int] = None,
        total_pages: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ReadingGoal]:
        raise NotImplementedError

    # Outbox of writes made while the remote store was unreachable
    def enqueue_outbox(self, operation: OutboxOperation, payload: Dict[str, Any]) -> OutboxEntry:
        raise NotImplementedError

    def list_outbox(self) -> List[OutboxEntry]:
        raise NotImplementedError

    def update_outbox_payload(self, entry_id: int, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete_outbox(self, entry_id: int) -> None:
        raise NotImplementedError


class InMemoryProgressRepository(ProgressRepository):
    """
    Process-lifetime store for demos and tests. It keeps copies of dataclasses
    to avoid cross-mutation between calls; a single lock makes goal
    deactivate-then-activate sequences atomic for threaded callers.
    """

    def __init__(self):
        self.users: Dict[int, User] = {}
        self.events: Dict[int, ReadingEvent] = {}
        self.goals: Dict[int, ReadingGoal] = {}
        self.outbox: Dict[int, OutboxEntry] = {}
        self._next_ids = {"users": 1, "events": 1, "goals": 1, "outbox": 1}
        self._lock = threading.RLock()

    def _clone(self, obj):
        return deepcopy(obj)

    def _take_id(self, table: str) -> int:
        value = self._next_ids[table]
        self._next_ids[table] = value + 1
        return value

    def create_user(self, username: str) -> User:
        with self._lock:
            user = User(id=self._take_id("users"), username=username)
            self.users[user.id] = user
            return self._clone(user)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self.users.get(user_id)
            return self._clone(user) if user else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            for user in self.users.values():
                if user.username == username:
                    return self._clone(user)
        return None

    def append_event(self, event: NewReadingEvent) -> ReadingEvent:
        with self._lock:
            record = ReadingEvent(
                id=self._take_id("events"),
                user_id=event.user_id,
                date=event.date,
                partition_number=event.partition_number,
                pages_read=event.pages_read,
                start_page=event.start_page,
                end_page=event.end_page,
                created_at=utcnow(),
            )
            self.events[record.id] = record
            return self._clone(record)

    def _events_for(self, user_id: int) -> List[ReadingEvent]:
        with self._lock:
            return [self._clone(e) for e in self.events.values() if e.user_id == user_id]

    def list_events(self, user_id: int) -> List[ReadingEvent]:
        return sorted(self._events_for(user_id), key=_newest_first, reverse=True)

    def list_events_by_date_range(self, user_id: int, start: date, end: date) -> List[ReadingEvent]:
        events = [e for e in self._events_for(user_id) if start <= e.date <= end]
        return sorted(events, key=_newest_first)

    def list_events_by_partition(self, user_id: int, partition_number: int) -> List[ReadingEvent]:
        return [e for e in self.list_events(user_id) if e.partition_number == partition_number]

    def list_recent_events(self, user_id: int, limit: int) -> List[ReadingEvent]:
        return self.list_events(user_id)[: max(limit, 0)]

    def _deactivate_others(self, user_id: int, keep_goal_id: Optional[int] = None) -> None:
        now = utcnow()
        for goal in self.goals.values():
            if goal.user_id == user_id and goal.id != keep_goal_id and goal.is_active:
                goal.is_active = False
                goal.updated_at = now

    def create_goal(self, goal: NewReadingGoal) -> ReadingGoal:
        with self._lock:
            if goal.is_active:
                self._deactivate_others(goal.user_id)
            now = utcnow()
            record = ReadingGoal(
                id=self._take_id("goals"),
                user_id=goal.user_id,
                daily_target=goal.daily_target,
                weekly_target=goal.weekly_target,
                total_pages=goal.total_pages,
                is_active=goal.is_active,
                created_at=now,
                updated_at=now,
            )
            self.goals[record.id] = record
            return self._clone(record)

    def get_goal(self, goal_id: int) -> Optional[ReadingGoal]:
        with self._lock:
            goal = self.goals.get(goal_id)
            return self._clone(goal) if goal else None

    def get_active_goal(self, user_id: int) -> Optional[ReadingGoal]:
        with self._lock:
            for goal in sorted(self.goals.values(), key=lambda g: g.id):
                if goal.user_id == user_id and goal.is_active:
                    return self._clone(goal)
        return None

    def update_goal(
        self,
        goal_id: int,
        daily_target: Optional[int] = None,
        weekly_target: Optional[int] = None,
        total_pages: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ReadingGoal]:
        with self._lock:
            goal = self.goals.get(goal_id)
            if not goal:
                return None
            if is_active:
                self._deactivate_others(goal.user_id, keep_goal_id=goal_id)
            if daily_target is not None:
                goal.daily_target = daily_target
            if weekly_target is not None:
                goal.weekly_target = weekly_target
            if total_pages is not None:
                goal.total_pages = total_pages
            if is_active is not None:
                goal.is_active = is_active
            goal.updated_at = utcnow()
            return self._clone(goal)

    def enqueue_outbox(self, operation: OutboxOperation, payload: Dict[str, Any]) -> OutboxEntry:
        with self._lock:
            entry = OutboxEntry(id=self._take_id("outbox"), operation=operation, payload=self._clone(payload))
            self.outbox[entry.id] = entry
            return self._clone(entry)

    def list_outbox(self) -> List[OutboxEntry]:
        with self._lock:
            return [self._clone(e) for e in sorted(self.outbox.values(), key=lambda e: e.id)]

    def update_outbox_payload(self, entry_id: int, payload: Dict[str, Any]) -> None:
        with self._lock:
            entry = self.outbox.get(entry_id)
            if entry:
                entry.payload = self._clone(payload)

    def delete_outbox(self, entry_id: int) -> None:
        with self._lock:
            self.outbox.pop(entry_id, None)


class SqlAlchemyProgressRepository(ProgressRepository):
    """
    SQL-backed repository using SQLAlchemy. Works with SQLite/Postgres URLs.
    Each operation runs in its own transaction; any SQLAlchemy error rolls the
    transaction back and surfaces as StorageFailure.
    """

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)
        logger.info("Progress tables ready at %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Storage operation failed and was rolled back: %s", exc)
            raise StorageFailure(str(exc)) from exc
        finally:
            session.close()

    # region mapping
    @staticmethod
    def _to_user(model: UserModel) -> User:
        return User(id=model.id, username=model.username, created_at=model.created_at)

    @staticmethod
    def _to_event(model: ReadingEventModel) -> ReadingEvent:
        return ReadingEvent(
            id=model.id,
            user_id=model.user_id,
            date=model.date,
            partition_number=model.partition_number,
            pages_read=model.pages_read,
            start_page=model.start_page,
            end_page=model.end_page,
            created_at=model.created_at,
        )

    @staticmethod
    def _to_goal(model: ReadingGoalModel) -> ReadingGoal:
        return ReadingGoal(
            id=model.id,
            user_id=model.user_id,
            daily_target=model.daily_target,
            weekly_target=model.weekly_target,
            total_pages=model.total_pages,
            is_active=bool(model.is_active),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _to_outbox(model: OutboxModel) -> OutboxEntry:
        return OutboxEntry(
            id=model.id,
            operation=model.operation,
            payload=json.loads(model.payload_json or "{}"),
            created_at=model.created_at,
        )

    # endregion

    # region User operations
    def create_user(self, username: str) -> User:
        with self._transaction() as session:
            model = UserModel(username=username, created_at=utcnow())
            session.add(model)
            session.flush()
            return self._to_user(model)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._transaction() as session:
            model = session.get(UserModel, user_id)
            return self._to_user(model) if model else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._transaction() as session:
            stmt = select(UserModel).where(UserModel.username == username)
            model = session.execute(stmt).scalars().first()
            return self._to_user(model) if model else None

    # endregion

    # region Reading events
    def append_event(self, event: NewReadingEvent) -> ReadingEvent:
        with self._transaction() as session:
            model = ReadingEventModel(
                user_id=event.user_id,
                date=event.date,
                partition_number=event.partition_number,
                pages_read=event.pages_read,
                start_page=event.start_page,
                end_page=event.end_page,
                created_at=utcnow(),
            )
            session.add(model)
            session.flush()
            return self._to_event(model)

    def _newest_first_stmt(self, user_id: int):
        return (
            select(ReadingEventModel)
            .where(ReadingEventModel.user_id == user_id)
            .order_by(
                ReadingEventModel.date.desc(),
                ReadingEventModel.created_at.desc(),
                ReadingEventModel.id.desc(),
            )
        )

    def list_events(self, user_id: int) -> List[ReadingEvent]:
        with self._transaction() as session:
            models = session.execute(self._newest_first_stmt(user_id)).scalars().all()
            return [self._to_event(m) for m in models]

    def list_events_by_date_range(self, user_id: int, start: date, end: date) -> List[ReadingEvent]:
        with self._transaction() as session:
            stmt = (
                select(ReadingEventModel)
                .where(
                    ReadingEventModel.user_id == user_id,
                    ReadingEventModel.date >= start,
                    ReadingEventModel.date <= end,
                )
                .order_by(
                    ReadingEventModel.date.asc(),
                    ReadingEventModel.created_at.asc(),
                    ReadingEventModel.id.asc(),
                )
            )
            models = session.execute(stmt).scalars().all()
            return [self._to_event(m) for m in models]

    def list_events_by_partition(self, user_id: int, partition_number: int) -> List[ReadingEvent]:
        with self._transaction() as session:
            stmt = self._newest_first_stmt(user_id).where(ReadingEventModel.partition_number == partition_number)
            models = session.execute(stmt).scalars().all()
            return [self._to_event(m) for m in models]

    def list_recent_events(self, user_id: int, limit: int) -> List[ReadingEvent]:
        with self._transaction() as session:
            stmt = self._newest_first_stmt(user_id).limit(max(limit, 0))
            models = session.execute(stmt).scalars().all()
            return [self._to_event(m) for m in models]

    # endregion

    # region Reading goals
    def _deactivate_others(self, session: Session, user_id: int, keep_goal_id: Optional[int] = None) -> None:
        stmt = update(ReadingGoalModel).where(
            ReadingGoalModel.user_id == user_id,
            ReadingGoalModel.is_active.is_(True),
        )
        if keep_goal_id is not None:
            stmt = stmt.where(ReadingGoalModel.id != keep_goal_id)
        session.execute(stmt.values(is_active=False, updated_at=utcnow()))

    def create_goal(self, goal: NewReadingGoal) -> ReadingGoal:
        with self._transaction() as session:
            if goal.is_active:
                self._deactivate_others(session, goal.user_id)
            now = utcnow()
            model = ReadingGoalModel(
                user_id=goal.user_id,
                daily_target=goal.daily_target,
                weekly_target=goal.weekly_target,
                total_pages=goal.total_pages,
                is_active=goal.is_active,
                created_at=now,
                updated_at=now,
            )
            session.add(model)
            session.flush()
            return self._to_goal(model)

    def get_goal(self, goal_id: int) -> Optional[ReadingGoal]:
        with self._transaction() as session:
            model = session.get(ReadingGoalModel, goal_id)
            return self._to_goal(model) if model else None

    def get_active_goal(self, user_id: int) -> Optional[ReadingGoal]:
        with self._transaction() as session:
            stmt = (
                select(ReadingGoalModel)
                .where(ReadingGoalModel.user_id == user_id, ReadingGoalModel.is_active.is_(True))
                .order_by(ReadingGoalModel.id.asc())
            )
            model = session.execute(stmt).scalars().first()
            return self._to_goal(model) if model else None

    def update_goal(
        self,
        goal_id: int,
        daily_target: Optional[int] = None,
        weekly_target: Optional[int] = None,
        total_pages: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[ReadingGoal]:
        with self._transaction() as session:
            model = session.get(ReadingGoalModel, goal_id)
            if not model:
                return None
            if is_active:
                self._deactivate_others(session, model.user_id, keep_goal_id=goal_id)
            if daily_target is not None:
                model.daily_target = daily_target
            if weekly_target is not None:
                model.weekly_target = weekly_target
            if total_pages is not None:
                model.total_pages = total_pages
            if is_active is not None:
                model.is_active = is_active
            model.updated_at = utcnow()
            session.flush()
            return self._to_goal(model)

    # endregion

    # region Outbox
    def enqueue_outbox(self, operation: OutboxOperation, payload: Dict[str, Any]) -> OutboxEntry:
        with self._transaction() as session:
            model = OutboxModel(operation=operation, payload_json=json.dumps(payload), created_at=utcnow())
            session.add(model)
            session.flush()
            return self._to_outbox(model)

    def list_outbox(self) -> List[OutboxEntry]:
        with self._transaction() as session:
            models = session.execute(select(OutboxModel).order_by(OutboxModel.id.asc())).scalars().all()
            return [self._to_outbox(m) for m in models]

    def update_outbox_payload(self, entry_id: int, payload: Dict[str, Any]) -> None:
        with self._transaction() as session:
            session.execute(
                update(OutboxModel).where(OutboxModel.id == entry_id).values(payload_json=json.dumps(payload))
            )

    def delete_outbox(self, entry_id: int) -> None:
        with self._transaction() as session:
            model = session.get(OutboxModel, entry_id)
            if model:
                session.delete(model)

    # endregion
