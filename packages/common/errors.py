"""
Error taxonomy for the purchase reconciliation engine

- ValidationError: bad or missing attributes, raised before any write
- NotFoundError: a referenced row does not exist (or belongs to another household)
- TransactionError: the database rejected a write; the transaction was rolled back
- AdvisoryFailure: a best-effort side effect failed; callers log and continue
"""


class ReconciliationError(Exception):
    """Base class for engine errors"""


class ValidationError(ReconciliationError):
    """Input failed validation"""


class NotFoundError(ReconciliationError):
    """Referenced entity does not exist"""

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message)


class TransactionError(ReconciliationError):
    """Write rolled back"""


class AdvisoryFailure(ReconciliationError):
    """Best-effort side effect failed"""


class StockError(AdvisoryFailure):
    """Stock item could not be created or updated"""


class SchedulerError(AdvisoryFailure):
    """Scheduler task could not be ensured"""
