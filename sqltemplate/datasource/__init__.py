"""
Transaction-aware connection acquisition and release.

Keeps track of which connection backs an active transaction for each target
in the current thread or task.
"""

from sqltemplate.datasource.transaction_context import (
    Binding,
    TransactionContext,
    transactional,
)

__all__ = ["Binding", "TransactionContext", "transactional"]
