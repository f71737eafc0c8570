"""Error taxonomy shared by the gateways and the route handlers."""


class BarberClubError(Exception):
    status_code = 500

    def __init__(self, message='Erro interno no servidor'):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(BarberClubError):
    """Required credentials for an external service are missing."""


class DataServiceError(BarberClubError):
    """A call to the remote data service failed."""

    def __init__(self, message, table=None):
        self.table = table
        super().__init__(message)


class QueryCancelled(DataServiceError):
    """A query finished after its caller gave up on it; the result is discarded."""

    def __init__(self, table):
        super().__init__(f'Query on {table} was cancelled', table=table)


class PayloadError(BarberClubError):
    status_code = 400

    def __init__(self, message='Invalid payload', details=None):
        self.details = details or []
        super().__init__(message)


class UploadRejected(BarberClubError):
    status_code = 400


class ChatUnavailable(BarberClubError):
    status_code = 503
