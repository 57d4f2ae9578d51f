from typing import Optional

from sqlalchemy import Date, DateTime, Enum, ForeignKeyConstraint, Index, Integer, JSON, PrimaryKeyConstraint, String, Text, TypeDecorator, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import datetime
import uuid

from .db_enums import RecurrenceKindEnum, ExceptionStatusEnum


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Stores instants as naive UTC and hands them back as aware UTC datetimes,
    so comparisons behave the same on PostgreSQL and SQLite.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Refusing to store naive datetime {value!r}; instants must be timezone-aware.")
        return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=datetime.timezone.utc)


JSONType = JSON().with_variant(JSONB(), 'postgresql')


class Base(DeclarativeBase):
    pass


class Instructors(Base):
    __tablename__ = 'instructors'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='instructors_pkey'),
        UniqueConstraint('email', name='instructors_email_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    email: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    class_series: Mapped[list['ClassSeries']] = relationship('ClassSeries', back_populates='instructor')


class RoomTypes(Base):
    __tablename__ = 'room_types'
    __table_args__ = (
        PrimaryKeyConstraint('id', name='room_types_pkey'),
        UniqueConstraint('name', name='room_types_name_key')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    rooms: Mapped[list['Rooms']] = relationship('Rooms', back_populates='room_type')


class Rooms(Base):
    __tablename__ = 'rooms'
    __table_args__ = (
        ForeignKeyConstraint(['room_type_id'], ['room_types.id'], ondelete='RESTRICT', name='rooms_room_type_id_fkey'),
        PrimaryKeyConstraint('id', name='rooms_pkey')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    room_name: Mapped[str] = mapped_column(Text)
    room_type_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    capacity: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    room_type: Mapped['RoomTypes'] = relationship('RoomTypes', back_populates='rooms')
    class_series: Mapped[list['ClassSeries']] = relationship('ClassSeries', back_populates='room')


class ClassSeries(Base):
    __tablename__ = 'class_series'
    __table_args__ = (
        ForeignKeyConstraint(['instructor_id'], ['instructors.id'], ondelete='RESTRICT', name='class_series_instructor_id_fkey'),
        ForeignKeyConstraint(['room_id'], ['rooms.id'], ondelete='RESTRICT', name='class_series_room_id_fkey'),
        PrimaryKeyConstraint('id', name='class_series_pkey'),
        Index('idx_class_series_instructor', 'instructor_id'),
        Index('idx_class_series_room', 'room_id'),
        Index('idx_class_series_title', 'title')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(Text)
    instructor_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    room_id: Mapped[uuid.UUID] = mapped_column(Uuid)

    # The recurrence rule, stored flat
    recurrence_kind: Mapped[str] = mapped_column(Enum(*RecurrenceKindEnum.get_all_names(), name='recurrence_kind_enum'))
    series_start_date: Mapped[datetime.date] = mapped_column(Date)
    series_end_date: Mapped[Optional[datetime.date]] = mapped_column(Date)
    interval_unit: Mapped[int] = mapped_column(Integer, default=1)
    weekdays: Mapped[list] = mapped_column(JSONType, default=list)
    month_days: Mapped[list] = mapped_column(JSONType, default=list)
    manual_dates: Mapped[list] = mapped_column(JSONType, default=list)
    time_slots: Mapped[list] = mapped_column(JSONType, default=list)

    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    instructor: Mapped['Instructors'] = relationship('Instructors', back_populates='class_series')
    room: Mapped['Rooms'] = relationship('Rooms', back_populates='class_series')
    sessions: Mapped[list['ClassSessions']] = relationship(
        'ClassSessions',
        back_populates='series',
        order_by='ClassSessions.position',
        collection_class=ordering_list('position'),
        cascade='all, delete-orphan'
    )
    exceptions: Mapped[list['SeriesExceptions']] = relationship(
        'SeriesExceptions',
        back_populates='series',
        order_by='SeriesExceptions.created_at',
        cascade='all, delete-orphan'
    )


class ClassSessions(Base):
    __tablename__ = 'class_sessions'
    __table_args__ = (
        ForeignKeyConstraint(['series_id'], ['class_series.id'], ondelete='CASCADE', name='class_sessions_series_id_fkey'),
        PrimaryKeyConstraint('id', name='class_sessions_pkey'),
        Index('idx_class_sessions_series', 'series_id'),
        Index('idx_class_sessions_interval', 'start_at', 'end_at')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    series_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    position: Mapped[int] = mapped_column(Integer, default=0)
    start: Mapped[datetime.datetime] = mapped_column('start_at', UTCDateTime)
    end: Mapped[datetime.datetime] = mapped_column('end_at', UTCDateTime)
    # start as produced by the expander; exceptions are anchored on it
    original_start: Mapped[datetime.datetime] = mapped_column(UTCDateTime)

    series: Mapped['ClassSeries'] = relationship('ClassSeries', back_populates='sessions')


class SeriesExceptions(Base):
    __tablename__ = 'series_exceptions'
    __table_args__ = (
        ForeignKeyConstraint(['series_id'], ['class_series.id'], ondelete='CASCADE', name='series_exceptions_series_id_fkey'),
        PrimaryKeyConstraint('id', name='series_exceptions_pkey'),
        Index('idx_series_exceptions_series_anchor', 'series_id', 'anchor')
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    series_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    anchor: Mapped[datetime.datetime] = mapped_column(UTCDateTime)
    status: Mapped[str] = mapped_column(Enum(*ExceptionStatusEnum.get_all_names(), name='exception_status_enum'))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    new_start: Mapped[Optional[datetime.datetime]] = mapped_column(UTCDateTime)
    new_end: Mapped[Optional[datetime.datetime]] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime.datetime] = mapped_column(UTCDateTime, default=utcnow)

    series: Mapped['ClassSeries'] = relationship('ClassSeries', back_populates='exceptions')
