from __future__ import annotations

import os
from logging.config import fileConfig

from alembic.operations import ops
from sqlalchemy import engine_from_config, pool

from alembic import context
from app.core.config import settings
from app.core.db import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

DROP_OPS = (ops.DropTableOp, ops.DropColumnOp, ops.DropIndexOp, ops.DropConstraintOp)


def _has_drops(operation: ops.MigrateOperation) -> bool:
    if isinstance(operation, DROP_OPS):
        return True
    return any(_has_drops(op) for op in getattr(operation, "ops", None) or [])


def _reject_drops(_context, _revision, directives) -> None:
    """Autogenerate must never emit drops unless ALLOW_ALEMBIC_DROPS=1."""
    if os.environ.get("ALLOW_ALEMBIC_DROPS") == "1" or not directives:
        return
    upgrade_ops = getattr(directives[0], "upgrade_ops", None)
    if upgrade_ops is not None and _has_drops(upgrade_ops):
        raise SystemExit(
            "Refusing to autogenerate a revision with drop_* operations on Black tables. "
            "Set ALLOW_ALEMBIC_DROPS=1 to allow it."
        )


def _configure_kwargs() -> dict:
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "process_revision_directives": _reject_drops,
    }


def run_migrations_offline() -> None:
    context.configure(
        url=settings.DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
