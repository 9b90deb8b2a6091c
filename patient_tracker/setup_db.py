# NOTE: Database initialization and table creation for the patient tracking system
from sqlalchemy import inspect, text
import logging
import sys

from patient_tracker.database import DATABASE_URL, engine
from patient_tracker.models import Base

logger = logging.getLogger(__name__)

REQUIRED_TABLES = (
    "patients",
    "lab_results",
    "ward_scan_logs",
    "patient_location_inconsistencies",
    "patient_notifications",
)


def setup_database() -> bool:
    """Initialize database connection and create tables if they don't exist."""
    try:
        logger.info("Testing database connection...")

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            logger.info(f"Connected to {engine.dialect.name} database")

        logger.info("Creating database tables...")

        # Create all tables defined in models
        Base.metadata.create_all(bind=engine)

        logger.info("Database setup completed successfully")
        logger.info(f"Available tables: {', '.join(REQUIRED_TABLES)}")

        return True

    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        logger.error("Make sure PostgreSQL is running and credentials are correct")
        logger.error(f"Database URL: {DATABASE_URL.split('@')[1] if '@' in DATABASE_URL else DATABASE_URL}")
        return False

def check_tables() -> bool:
    """Check if required tables exist."""
    try:
        existing = set(inspect(engine).get_table_names())
        missing = [table for table in REQUIRED_TABLES if table not in existing]
        if missing:
            logger.warning(f"Missing tables: {', '.join(missing)}")
        return not missing
    except Exception as e:
        logger.error(f"Table check failed: {e}")
        return False

def main() -> None:
    logging.basicConfig(level=logging.INFO)
    if setup_database():
        logger.info("Ready to start the application!")
    else:
        logger.error("Please fix database issues before starting the application")
        sys.exit(1)

if __name__ == "__main__":
    main()
