from __future__ import annotations

from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.config import Config

from alembic import command


def _alembic_config(database_url: str) -> Config:
    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", database_url)
    return alembic_config


def _upgrade_head(tmp_path: Path) -> str:
    db_path = tmp_path / "credentials_migration.db"
    database_url = f"sqlite+pysqlite:///{db_path}"
    command.upgrade(_alembic_config(database_url), "head")
    return database_url


def test_migration_creates_users_table_with_reset_columns(tmp_path: Path) -> None:
    database_url = _upgrade_head(tmp_path)
    inspector = sa.inspect(sa.create_engine(database_url))

    assert "users" in set(inspector.get_table_names())
    columns = {column["name"]: column for column in inspector.get_columns("users")}
    assert {
        "id",
        "email",
        "password_hash",
        "reset_otp_hash",
        "reset_otp_expires_at",
        "reset_otp_attempts",
        "created_at",
        "updated_at",
    } <= set(columns)
    assert columns["reset_otp_hash"]["nullable"] is True
    assert columns["reset_otp_expires_at"]["nullable"] is True
    assert columns["reset_otp_attempts"]["nullable"] is False


def test_migration_enforces_unique_email(tmp_path: Path) -> None:
    database_url = _upgrade_head(tmp_path)
    engine = sa.create_engine(database_url)

    uniques = {
        tuple(constraint["column_names"])
        for constraint in sa.inspect(engine).get_unique_constraints("users")
    }
    assert ("email",) in uniques

    insert = sa.text("INSERT INTO users (id, email, password_hash) VALUES (:id, :email, 'hash')")
    with engine.begin() as connection:
        connection.execute(insert, {"id": "a" * 32, "email": "a@x.com"})
    with pytest.raises(sa.exc.IntegrityError), engine.begin() as connection:
        connection.execute(insert, {"id": "b" * 32, "email": "a@x.com"})


def test_reset_attempts_default_to_zero(tmp_path: Path) -> None:
    database_url = _upgrade_head(tmp_path)
    engine = sa.create_engine(database_url)

    with engine.begin() as connection:
        connection.execute(
            sa.text("INSERT INTO users (id, email, password_hash) VALUES (:id, :email, 'hash')"),
            {"id": "c" * 32, "email": "c@x.com"},
        )
        row = connection.execute(
            sa.text("SELECT reset_otp_hash, reset_otp_attempts FROM users")
        ).mappings().one()

    assert row["reset_otp_hash"] is None
    assert row["reset_otp_attempts"] == 0
