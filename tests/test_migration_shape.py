from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from core.config import get_settings
from core.models import Base


def test_required_tables_present_in_migration():
    text = Path("alembic/versions/20261019_0001_initial.py").read_text()
    for table in Base.metadata.tables:
        assert f'"{table}"' in text, f"{table} missing from initial migration"


def test_migrations_avoid_postgres_now_function_for_portability():
    migrations_dir = Path("alembic/versions")
    for migration_file in migrations_dir.glob("*.py"):
        text = migration_file.read_text(encoding="utf-8").lower()
        assert "now()" not in text, f"Non-portable now() found in {migration_file.name}"


def test_alembic_upgrade_head_succeeds_on_sqlite(tmp_path, monkeypatch):
    db_path = tmp_path / "migration_smoke.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    get_settings.cache_clear()

    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")

    engine = create_engine(f"sqlite:///{db_path}")
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        athlete_columns = {c["name"] for c in inspector.get_columns("athletes")}
        executed_columns = {c["name"] for c in inspector.get_columns("executed_days")}
    finally:
        engine.dispose()
    assert set(Base.metadata.tables) <= tables
    assert "five_k_pace_seconds" in athlete_columns
    assert "pace_adaptation" in executed_columns

    command.downgrade(cfg, "base")
    get_settings.cache_clear()
