# revenue_projections/core/config.py
from decimal import Decimal
from typing import List, Literal

from pydantic_settings import BaseSettings
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session


class Settings(BaseSettings):
    # --- Database ---
    DATABASE_URL: str = "sqlite:///./projections.db"

    # --- Logging ---
    LOG_LEVEL: str = "INFO"

    # --- Projection engine ---
    # historical: tax share of total taken from the analysis window
    # fixed: DEFAULT_TAX_RATE_PCT applied on the subtotal
    TAX_SPLIT_MODE: Literal["historical", "fixed"] = "historical"
    DEFAULT_TAX_RATE_PCT: Decimal = Decimal("16")
    TOTALS_TOLERANCE: Decimal = Decimal("0.01")
    RECALC_MAX_SLICES: int = 5000

    # --- Comparison ---
    COMPARE_MIN_SCENARIOS: int = 2
    COMPARE_MAX_SCENARIOS: int = 4

    # --- CORS ---
    CORS_ALLOW_ORIGINS: List[str] = []

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# SQLite needs check_same_thread off for the threadpool FastAPI runs sync routes in
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, future=True)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def get_db() -> Session:
    """FastAPI dependency: one DB session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
