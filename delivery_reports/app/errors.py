class DeliveryReportsError(Exception):
    pass


class ValidationError(DeliveryReportsError):
    """Filter input that cannot produce a query (bad range, clashing offices)."""


class RecordSourceError(DeliveryReportsError):
    """Consignment data that does not match the expected shape."""


class ReferenceDataLoadError(DeliveryReportsError):
    pass


class ReportLoadError(DeliveryReportsError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
