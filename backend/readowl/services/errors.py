"""Domain errors raised by the service layer and translated to HTTP by the routers."""


class ReadowlError(Exception):
    """Base class for service-layer errors."""

    def __init__(self, detail):
        super().__init__(str(detail))
        self.detail = detail


class NotFoundError(ReadowlError):
    pass


class PermissionDeniedError(ReadowlError):
    pass


class ValidationFailedError(ReadowlError):
    pass
