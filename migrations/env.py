import logging
from logging.config import fileConfig

from alembic import context
from certclaim.app import create_app, db
from certclaim import models  # noqa: F401  registers tables on db.metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)
logger = logging.getLogger("alembic.env")

app = create_app()
target_metadata = db.metadata


def _is_sqlite(url: str) -> bool:
    return str(url).startswith("sqlite")


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url") or app.config[
        "SQLALCHEMY_DATABASE_URI"
    ]
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=_is_sqlite(url),
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with app.app_context():
        engine = db.engine
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=target_metadata,
                compare_type=True,
                render_as_batch=_is_sqlite(engine.url),
            )
            with context.begin_transaction():
                context.run_migrations()
        logger.info("migrations applied to %s", engine.url.render_as_string())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
