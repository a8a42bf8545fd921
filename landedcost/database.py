from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
import os
from dotenv import load_dotenv

from landedcost.models import Base

load_dotenv()

# Database URL - SQLite for development, PostgreSQL/MySQL for production
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./landedcost.db")

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency to get DB session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Create reference tables if they do not exist yet."""
    Base.metadata.create_all(bind=bind or engine)

def ping(db) -> bool:
    """Database round trip used by the health endpoint."""
    return db.execute(text("SELECT 1")).scalar() == 1
