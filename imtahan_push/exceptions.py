class ConfigurationError(Exception):
    """Raised when the service cannot start because of missing or invalid settings."""


class TerminalWriteError(Exception):
    """Raised when the terminal state of an outbox record could not be stored.

    ``fields`` holds the outcome that was being written so it can be retried.
    """

    def __init__(self, fields):
        super().__init__(f"Could not store terminal state {fields}")
        self.fields = fields
