"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class TierConfigurationError(DomainException):
    """Family interest tier table is malformed"""

    pass


class DataAccessError(DomainException):
    """Read or write against a store or the ledger failed"""

    pass


class LedgerAPIError(DataAccessError):
    """Points ledger returned an error or is unavailable"""

    pass


class AlreadySettledError(DomainException):
    """Family or child already settled for the period"""

    pass
