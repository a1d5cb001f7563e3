class DefinitionError(Exception):
    """A test document could not be turned into a test definition."""

    def __init__(self, message: str, source: str | None = None, test_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.source = source
        self.test_id = test_id

    def __str__(self) -> str:
        prefix = ""
        if self.source:
            prefix += f"{self.source}: "
        if self.test_id:
            prefix += f"[{self.test_id}] "
        return f"{prefix}{self.message}"
