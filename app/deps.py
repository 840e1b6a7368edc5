from fastapi import Depends
from sqlalchemy.orm import Session

from app.admission import AdmissionEngine
from app.catalog import SessionCatalog
from app.clock import Clock, get_clock
from app.db import get_db
from app.levels import LevelCatalog


def get_engine(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> AdmissionEngine:
    return AdmissionEngine(db, clock)


def get_catalog(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> SessionCatalog:
    return SessionCatalog(db, clock)


def get_levels(db: Session = Depends(get_db)) -> LevelCatalog:
    return LevelCatalog(db)
