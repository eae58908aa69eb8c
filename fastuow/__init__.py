"""FastUoW - request scoped Unit of Work for SQLAlchemy web applications."""
from .context import (  # noqa
    RequestContext,
    current_uow,
    get_session,
    get_transaction,
    persist,
    set_rollback_only,
)
from .core import FastUoWError, FastUoWInitError  # noqa
from .config import PluginConfig  # noqa
from .orm import persistence_unit, register_persistence_unit  # noqa
from .plugin import SqlAlchemyPlugin  # noqa
from .uow import SqlAlchemyUnitOfWork, Transaction  # noqa
