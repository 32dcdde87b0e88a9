"""SQLAlchemy persistence for the stored follow list."""

from .mappings import contacts_table, create_all_tables, follow_list_meta_table, metadata
from .repositories import SqlAlchemyContactRepository
from .unit_of_work import SqlAlchemyUnitOfWork, StartupError, is_started, shutdown, startup

__all__ = [
    "SqlAlchemyContactRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "contacts_table",
    "create_all_tables",
    "follow_list_meta_table",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
