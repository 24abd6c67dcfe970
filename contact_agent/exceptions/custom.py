class TaskValidationError(Exception):
    def __init__(self, message: str, where: str | None = None):
        self.message = message
        self.where = where
        super().__init__(message)


class AuthorizationError(Exception):
    def __init__(self, message: str = "Not allowed"):
        self.message = message
        super().__init__(message)


class NavigationError(Exception):
    def __init__(self, message: str, where: str | None = None):
        self.message = message
        self.where = where
        super().__init__(message)


class LoginError(Exception):
    def __init__(self, message: str, where: str | None = None):
        self.message = message
        self.where = where
        super().__init__(message)


class ExtractionError(Exception):
    def __init__(self, message: str, where: str | None = None):
        self.message = message
        self.where = where
        super().__init__(message)
