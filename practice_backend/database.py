from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from practice_backend.core import config


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {}


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_cached_appointment_schema_checked = False
_availability_schema_checked = False


def ensure_cached_appointment_schema() -> None:
    global _cached_appointment_schema_checked

    if _cached_appointment_schema_checked:
        return

    with _schema_lock:
        if _cached_appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'cached_appointments' not in inspector.get_table_names():
            _cached_appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('cached_appointments')}
        migration_steps = [
            ('risk_level', "ALTER TABLE cached_appointments ADD COLUMN risk_level VARCHAR DEFAULT 'low'"),
            ('homework_completed', 'ALTER TABLE cached_appointments ADD COLUMN homework_completed BOOLEAN'),
            ('is_video_call', 'ALTER TABLE cached_appointments ADD COLUMN is_video_call BOOLEAN'),
            ('notes', 'ALTER TABLE cached_appointments ADD COLUMN notes VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_cached_appointments_provider_start '
                    'ON cached_appointments(provider_id, start_time)'
                )
            )

        _cached_appointment_schema_checked = True


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability_slots' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_slots_provider_day '
                    'ON availability_slots(provider_id, day_of_week)'
                )
            )

        _availability_schema_checked = True
