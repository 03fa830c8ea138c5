# alembic/env.py
import os
import sys
from logging.config import fileConfig

from alembic import context

# run from the project root: `alembic upgrade head`
if os.getcwd() not in sys.path:
    sys.path.insert(0, os.getcwd())

from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from app import models  # noqa: E402
from app.db.session import make_engine  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# DATABASE_URL (or the app's SQLite default) wins over alembic.ini
engine = make_engine()
config.set_main_option("sqlalchemy.url", engine.url.render_as_string(hide_password=False))

target_metadata = models.Base.metadata
BATCH_MODE = engine.url.get_backend_name() == "sqlite"


def include_object(object, name, type_, reflected, compare_to):
    # never autogenerate drops for objects that only exist in the database
    if reflected and compare_to is None:
        return False
    return name != "alembic_version"


def skip_empty_revisions(context, revision, directives):
    if getattr(context.config.cmd_opts, "autogenerate", False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []


def _configure(**kwargs):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        include_object=include_object,
        render_as_batch=BATCH_MODE,
        process_revision_directives=skip_empty_revisions,
        **kwargs,
    )


if context.is_offline_mode():
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()
    engine.dispose()
