"""Transaction boundary shared by folder and file mutations."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Final

from django.db import IntegrityError, OperationalError, connection, transaction

from server.apps.files.exceptions import ConflictError, TransientStoreError

# SQLSTATE of a unique constraint violation (PostgreSQL)
_UNIQUE_VIOLATION: Final = '23505'

logger = logging.getLogger(__name__)


def is_unique_violation(error: IntegrityError) -> bool:
    """Tell whether an IntegrityError comes from a unique constraint.

    Foreign key and other constraint failures return False.

    Args:
        error: Error raised by the database backend.

    Returns:
        True for duplicate key errors.
    """
    cause = error.__cause__
    sqlstate = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if sqlstate is not None:
        return sqlstate == _UNIQUE_VIOLATION
    # SQLite reports no code, only the message
    return str(error).startswith('UNIQUE constraint failed')


@contextmanager
def store_transaction() -> Iterator[None]:
    """Run a block atomically against the metadata store.

    The connection is obtained before the transaction starts; failing to
    get one (database down, pool exhausted) propagates unchanged to the
    caller. Errors raised inside the block roll everything back:

    - a unique constraint violation becomes ConflictError (a uniqueness
      race lost to a concurrent writer)
    - any other IntegrityError propagates unchanged
    - OperationalError becomes TransientStoreError
    - FilesError subclasses pass through untouched

    Nested use creates a savepoint, as ``transaction.atomic`` does.

    Yields:
        None.

    Raises:
        ConflictError: If a unique constraint rejected the write.
        TransientStoreError: If the database failed mid-transaction.
    """
    connection.ensure_connection()
    try:
        with transaction.atomic():
            yield
    except IntegrityError as error:
        if not is_unique_violation(error):
            logger.exception('Transaction rolled back on integrity error')
            raise
        logger.warning('Transaction rolled back on constraint: %s', error)
        raise ConflictError('Name already in use at this level') from error
    except OperationalError as error:
        logger.exception('Transaction rolled back on store failure')
        raise TransientStoreError('Metadata store unavailable') from error
