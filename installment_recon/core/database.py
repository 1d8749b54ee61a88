from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, declarative_base

from installment_recon.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def upsert(db, model, key: str, values: dict):
    """
    Insert or update the row whose unique `key` column equals values[key].

    An insert that loses a race to a concurrent writer is rolled back and
    applied as an update instead, so redelivered events never duplicate.
    """
    column = getattr(model, key)
    record = db.query(model).filter(column == values[key]).one_or_none()
    if record is None:
        db.add(model(**values))
        try:
            db.commit()
            return db.query(model).filter(column == values[key]).one()
        except IntegrityError:
            db.rollback()
            record = db.query(model).filter(column == values[key]).one()

    for name, value in values.items():
        setattr(record, name, value)
    db.commit()
    return record
