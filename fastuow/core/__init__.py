from .errors import FastUoWError, FastUoWInitError  # noqa
from .models import (  # noqa
    AbstractPlugin,
    AbstractSession,
    AbstractUnitOfWork,
)
