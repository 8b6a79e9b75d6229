"""Persistent fixture/league cache tables and their data-access layer."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import setup_logger

logger = setup_logger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so everything is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class CachedFixture(Base):
    __tablename__ = "cached_fixtures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    fixture_id: Mapped[str] = mapped_column(String(200), unique=True, index=True)
    league: Mapped[str] = mapped_column(String(100), index=True)
    date: Mapped[str] = mapped_column(String(10), index=True)
    data: Mapped[Any] = mapped_column(JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class CachedLeague(Base):
    __tablename__ = "cached_leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    league_id: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    data: Mapped[Any] = mapped_column(JSON)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


def build_engine(url: str, echo: bool = False) -> Engine:
    if url.startswith("sqlite") and ":memory:" in url:
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(url, echo=echo, pool_pre_ping=True)


def init_schema(engine: Engine) -> None:
    Base.metadata.create_all(engine)


class FixtureCacheStore:
    """Reads degrade to "no cache" on database errors; writes raise."""

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utcnow) -> None:
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        self._clock = clock

    @classmethod
    def from_url(
        cls, url: str, echo: bool = False, clock: Callable[[], datetime] = utcnow
    ) -> "FixtureCacheStore":
        engine = build_engine(url, echo=echo)
        init_schema(engine)
        return cls(engine, clock=clock)

    # ---- fixtures ----

    def get_cached_fixture(self, fixture_id: str) -> Optional[CachedFixture]:
        try:
            with self._sessions() as session:
                return session.scalar(
                    select(CachedFixture).where(CachedFixture.fixture_id == fixture_id)
                )
        except SQLAlchemyError as exc:
            logger.error("Cache read failed for fixture %s: %s", fixture_id, exc)
            return None

    def get_cached_fixtures_by_league(
        self, league: str, date: Optional[str] = None
    ) -> List[CachedFixture]:
        stmt = select(CachedFixture).where(CachedFixture.league == league)
        if date is not None:
            stmt = stmt.where(CachedFixture.date == date)
        try:
            with self._sessions() as session:
                return list(session.scalars(stmt.order_by(CachedFixture.id)))
        except SQLAlchemyError as exc:
            logger.error("Cache read failed for bucket %s/%s: %s", league, date, exc)
            return []

    def get_cached_fixtures_by_date(self, date: str) -> List[CachedFixture]:
        try:
            with self._sessions() as session:
                return list(
                    session.scalars(
                        select(CachedFixture)
                        .where(CachedFixture.date == date)
                        .order_by(CachedFixture.id)
                    )
                )
        except SQLAlchemyError as exc:
            logger.error("Cache read failed for date %s: %s", date, exc)
            return []

    def create_cached_fixture(
        self, fixture_id: str, league: str, date: str, data: Any
    ) -> CachedFixture:
        record = CachedFixture(
            fixture_id=fixture_id, league=league, date=date, data=data, timestamp=self._clock()
        )
        with self._sessions.begin() as session:
            session.add(record)
        return record

    def update_cached_fixture(self, fixture_id: str, data: Any) -> Optional[CachedFixture]:
        with self._sessions.begin() as session:
            record = session.scalar(
                select(CachedFixture).where(CachedFixture.fixture_id == fixture_id)
            )
            if record is None:
                return None
            record.data = data
            record.timestamp = self._clock()
        return record

    def upsert_cached_fixture(
        self, fixture_id: str, league: str, date: str, data: Any
    ) -> CachedFixture:
        """Last write wins; no concurrency guard."""
        with self._sessions.begin() as session:
            record = session.scalar(
                select(CachedFixture).where(CachedFixture.fixture_id == fixture_id)
            )
            if record is None:
                record = CachedFixture(fixture_id=fixture_id)
                session.add(record)
            record.league = league
            record.date = date
            record.data = data
            record.timestamp = self._clock()
        return record

    def delete_bucket_except(self, league: str, date: str, keep: Iterable[str]) -> int:
        """Drop rows of ``(league, date)`` whose fixture_id is not in ``keep``."""
        stmt = delete(CachedFixture).where(
            CachedFixture.league == league, CachedFixture.date == date
        )
        keep = list(keep)
        if keep:
            stmt = stmt.where(CachedFixture.fixture_id.not_in(keep))
        with self._sessions.begin() as session:
            result = session.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0

    # ---- leagues ----

    def get_cached_league(self, league_id) -> Optional[CachedLeague]:
        try:
            with self._sessions() as session:
                return session.scalar(
                    select(CachedLeague).where(CachedLeague.league_id == str(league_id))
                )
        except SQLAlchemyError as exc:
            logger.error("Cache read failed for league %s: %s", league_id, exc)
            return None

    def get_all_cached_leagues(self) -> List[CachedLeague]:
        try:
            with self._sessions() as session:
                return list(session.scalars(select(CachedLeague).order_by(CachedLeague.id)))
        except SQLAlchemyError as exc:
            logger.error("Cache read failed for leagues: %s", exc)
            return []

    def upsert_cached_league(self, league_id, data: Any) -> CachedLeague:
        with self._sessions.begin() as session:
            record = session.scalar(
                select(CachedLeague).where(CachedLeague.league_id == str(league_id))
            )
            if record is None:
                record = CachedLeague(league_id=str(league_id))
                session.add(record)
            record.data = data
            record.timestamp = self._clock()
        return record

    def close(self) -> None:
        self.engine.dispose()
