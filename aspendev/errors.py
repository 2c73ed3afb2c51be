class AspendevError(Exception):

    exit_code = 1

    def __init__(self, message, exit_code=None):
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code

    def __repr__(self):
        return (
            f"<{self.__class__.__name__} message={self.message!r} "
            f"exit_code={self.exit_code!r}>"
        )


class UsageError(AspendevError):

    def __init__(self, message, usage=None):
        super().__init__(message)
        self.usage = usage


class UnsupportedPlatformError(AspendevError):
    pass


class ValidationError(AspendevError):
    pass


class SettingsError(AspendevError):

    def __init__(self, path, message):
        super().__init__(f"{path}: {message}")
        self.path = path


class WorkspaceError(AspendevError):

    def __init__(self, path, message):
        super().__init__(f"Workspace {path}: {message}")
        self.path = path
