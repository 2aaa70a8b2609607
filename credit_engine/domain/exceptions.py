"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class TransactionSourceError(DomainException):
    """UPI transaction platform returned an error or is unavailable"""

    pass


class MissingInputError(DomainException):
    """Required input (transaction list, merchant id, metrics) is absent"""

    pass


class RulesLoadError(DomainException):
    """Scoring rules document is missing, unreadable or invalid"""

    pass
