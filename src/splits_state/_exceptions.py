"""Custom exceptions for splits-state."""


class SplitsError(Exception):
    """Base exception for splits-state."""


class ConfigurationError(SplitsError):
    """Invalid configuration (conflicting or unusable client arguments)."""


class UnsupportedChainError(SplitsError):
    """Chain or protocol variant does not support the requested operation."""

    def __init__(self, chain_id: int, operation: str | None = None) -> None:
        message = f"Chain {chain_id} is not supported"
        if operation:
            message += f" for {operation}"
        super().__init__(message)
        self.chain_id = chain_id
        self.operation = operation


class NotFoundError(SplitsError):
    """No record of the requested account exists in the queried source."""

    def __init__(self, account_type: str, address: str, chain_id: int) -> None:
        super().__init__(f"No {account_type} found at address {address} on chain {chain_id}")
        self.account_type = account_type
        self.address = address
        self.chain_id = chain_id


class MissingCollaboratorError(SplitsError):
    """A required injected dependency (chain accessor, indexer, ...) was not supplied."""


class IncompleteDataError(SplitsError):
    """The token universe for live balances could not be determined."""


class InconsistentSourceError(SplitsError):
    """Two data sources disagree in a way the merge rules cannot resolve."""

    def __init__(self, message: str, expected: str | None = None, actual: str | None = None) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class InvalidRecipientsError(SplitsError):
    """Scaled recipient allocations do not add up to the required total."""


class IndexerError(SplitsError):
    """The indexer returned an error or a response this client cannot interpret."""
