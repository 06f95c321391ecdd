"""Domain exceptions for the Tallysticks client.

These exceptions are framework-agnostic. Errors raised by algosdk at the
ledger boundary are translated into this hierarchy so that workflow callers
only ever need to handle TallysticksError subclasses.
"""


class TallysticksError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, code: str = "TALLYSTICKS_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Local validation ---


class ValidationError(TallysticksError):
    """Raised when local input is malformed, detected before any submission.

    Example: an escrow without a bidding token trying to bid.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="VALIDATION_ERROR")


class NotConfigured(TallysticksError):
    """Raised when the matching application has not completed setup."""

    def __init__(self, app_id: int) -> None:
        super().__init__(
            message=f"Application {app_id} is not set up: no protocol tokens created",
            code="NOT_CONFIGURED",
        )
        self.app_id = app_id


class CompilationError(TallysticksError):
    """Raised when a contract template fails to compile. Never retried."""

    def __init__(self, template_name: str, reason: str) -> None:
        super().__init__(
            message=f"Failed to compile {template_name}: {reason}",
            code="COMPILATION_ERROR",
        )
        self.template_name = template_name


# --- State reads ---


class KeyNotFound(TallysticksError):
    """Raised when an expected global or local state key is absent.

    Callers that treat absence as a normal outcome should use the
    ``find_*`` / ``has_*`` variants of the state reader instead.
    """

    def __init__(self, key: str, scope: str) -> None:
        super().__init__(
            message=f"Key {key!r} not found in {scope}",
            code="KEY_NOT_FOUND",
        )
        self.key = key
        self.scope = scope


# --- Submission and confirmation ---


class SubmissionRejected(TallysticksError):
    """Raised when the ledger or the application program rejects a group.

    The whole group is void. Never retried automatically.
    """

    def __init__(self, message: str, tx_id: str | None = None) -> None:
        super().__init__(message=message, code="SUBMISSION_REJECTED")
        self.tx_id = tx_id


class ConfirmationTimeout(TallysticksError, TimeoutError):
    """Raised when a transaction is not confirmed within the round budget."""

    def __init__(self, tx_id: str, rounds: int) -> None:
        super().__init__(
            message=f"Transaction {tx_id} not confirmed after {rounds} rounds",
            code="CONFIRMATION_TIMEOUT",
        )
        self.tx_id = tx_id
        self.rounds = rounds


class TransientQueryError(TallysticksError):
    """Raised when a ledger query fails for a reason that may clear up."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, code="TRANSIENT_QUERY_ERROR")
