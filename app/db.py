from datetime import date, time, timedelta
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from app.config import config

SQLALCHEMY_DATABASE_URL = config.DATABASE_URL


def make_engine(url):
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    sqlite_engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless this is set per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


engine = make_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    # Import models here to create tables
    from app.models import MembershipLevel, User, GymSession
    Base.metadata.create_all(bind=engine)

    # Seed minimal data if empty
    from sqlalchemy.orm import Session
    db: Session = SessionLocal()
    try:
        if not db.query(MembershipLevel).first():
            db.add_all([
                MembershipLevel(name=config.FREE_LEVEL_NAME, weekly_limit=1, priority=0),
                MembershipLevel(name="Basic", weekly_limit=3, priority=0, default_duration_days=30),
                MembershipLevel(name="Premium", weekly_limit=None, priority=0, default_duration_days=30),
                MembershipLevel(name="Platinum", weekly_limit=None, priority=1, default_duration_days=30),
            ])
            db.flush()
        if not db.query(User).first():
            basic = db.query(MembershipLevel).filter(MembershipLevel.name == "Basic").first()
            db.add_all([
                User(name="Demo Member", email="member@example.com", role="user", membership_level_id=basic.id),
                User(name="Demo Staff", email="staff@example.com", role="staff"),
                User(name="Demo Admin", email="admin@example.com", role="admin"),
            ])
        if not db.query(GymSession).first():
            tomorrow = date.today() + timedelta(days=1)
            db.add_all([
                GymSession(name="Morning HIIT", date=tomorrow, start_time=time(7, 0), end_time=time(8, 0), capacity=12),
                GymSession(name="Yoga Flow", date=tomorrow, start_time=time(9, 0), end_time=time(10, 0), capacity=15),
                GymSession(name="Evening Strength", date=tomorrow, start_time=time(18, 0), end_time=time(19, 30), capacity=10),
            ])
        db.commit()
    finally:
        db.close()
