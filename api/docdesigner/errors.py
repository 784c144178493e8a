"""Failure taxonomy for template loading, reconciliation and saving."""


class DesignerError(Exception):
    pass


class RecoverableDataError(DesignerError):
    """Malformed stored data that is repaired or skipped, never surfaced."""


class ReconciliationDegraded(DesignerError):
    """Signer metadata could not be forced into the widget; editing continues."""


class ReferenceExpiredOrUnavailable(DesignerError):
    """A fresh document reference could not be issued for this load."""


class SaveRejected(DesignerError):
    """The widget reported fields but the reverse conversion produced none."""


class AuthenticationInvalid(DesignerError):
    pass


class DocumentNotFound(DesignerError):
    pass
