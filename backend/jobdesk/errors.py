class JobDeskError(Exception):
    """Base class for every error raised by the core."""


class InvalidTenantError(JobDeskError, ValueError):
    pass


class NotFoundError(JobDeskError):
    kind = "document"

    def __init__(self, doc_id: str, message: str | None = None):
        self.doc_id = doc_id
        super().__init__(message or f"{self.kind} {doc_id!r} not found")


class QuoteNotFoundError(NotFoundError):
    kind = "quote"


class MaterialNotFoundError(NotFoundError):
    kind = "material"


class ClientNotFoundError(NotFoundError):
    kind = "client"


class TrackingNotFoundError(NotFoundError):
    kind = "tracking"


class AlreadyApprovedError(JobDeskError):
    def __init__(self, quote_id: str):
        self.quote_id = quote_id
        super().__init__(f"quote {quote_id!r} is already approved")


class DuplicateClientError(JobDeskError):
    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"client {client_id!r} already exists")


class TransientConflictError(JobDeskError):
    """A document changed between read and commit. Retried by the store."""


class TransactionFailedError(JobDeskError):
    """The transaction kept conflicting until the retry budget ran out."""


class ExpenseNotFoundError(NotFoundError):
    kind = "expense"


class LedgerEntryNotFoundError(NotFoundError):
    kind = "transaction"


class TemplateNotFoundError(NotFoundError):
    kind = "template"
