from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Date, Time, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from app.db import Base


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    QUEUED = "queued"
    CANCELLED = "cancelled"

    # statuses that hold a spot against session capacity
    OCCUPYING = (PENDING, CONFIRMED)
    STORED = (PENDING, CONFIRMED, QUEUED)


class Role:
    USER = "user"
    STAFF = "staff"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    ALL = (USER, STAFF, ADMIN, SUPER_ADMIN)


class MembershipLevel(Base):
    __tablename__ = "membership_levels"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    weekly_limit = Column(Integer, nullable=True)  # NULL = unlimited
    priority = Column(Integer, nullable=False, default=0)  # 1 = may be queued when full
    default_duration_days = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    users = relationship("User", back_populates="membership_level")

    __table_args__ = (
        CheckConstraint("priority in (0, 1)", name="level_priority_valid"),
        CheckConstraint("weekly_limit IS NULL OR weekly_limit >= 0", name="level_weekly_limit_valid"),
    )


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True)
    role = Column(String, nullable=False, default=Role.USER)
    membership_level_id = Column(Integer, ForeignKey("membership_levels.id", ondelete="SET NULL"), nullable=True)
    subscription_expires_at = Column(DateTime, nullable=True)  # NULL = never expires
    created_at = Column(DateTime, default=datetime.utcnow)

    membership_level = relationship("MembershipLevel", back_populates="users")
    bookings = relationship("Booking", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("role in ('user','staff','admin','super_admin')", name="user_role_valid"),
    )


class GymSession(Base):
    __tablename__ = "gym_sessions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    capacity = Column(Integer, nullable=False)
    image = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    bookings = relationship("Booking", back_populates="gym_session", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="session_time_valid"),
        CheckConstraint("capacity > 0", name="session_capacity_positive"),
        Index("ix_gym_sessions_date_start", "date", "start_time"),
    )

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end_time)

    def __repr__(self):
        return f"<GymSession {self.id} {self.name} {self.date} {self.start_time}-{self.end_time}>"


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    gym_session_id = Column(Integer, ForeignKey("gym_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="bookings")
    gym_session = relationship("GymSession", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("status in ('pending','confirmed','queued')", name="booking_status_valid"),
        UniqueConstraint("user_id", "gym_session_id", name="uniq_user_session_booking"),
    )

    def __repr__(self):
        return f"<Booking {self.id} user={self.user_id} session={self.gym_session_id} {self.status}>"
