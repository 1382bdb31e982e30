import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from dental_clinic.core.errors import StorageError, UniqueConstraintError
from dental_clinic.services.policy import Actor


@contextmanager
def log_storage_failure(log: logging.Logger, action: str, actor: Actor, **context: Any) -> Iterator[None]:
    """Log a StorageError raised inside the block with the acting user and the operation's inputs."""
    try:
        yield
    except UniqueConstraintError:
        raise
    except StorageError:
        log.error(
            "%s failed: actor=%s role=%s %s",
            action,
            actor.id,
            actor.role.value,
            " ".join(f"{k}={v}" for k, v in context.items()),
        )
        raise
