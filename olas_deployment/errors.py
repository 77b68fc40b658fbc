from typing import Any, Optional


class PipelineError(Exception):
    """Base class for every failure that aborts a deployment pipeline run."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.step = None

    def at_step(self, step) -> "PipelineError":
        """Annotates the error with the step that was running when it was raised."""
        if self.step is None:
            self.step = step
        return self

    def __str__(self) -> str:
        if self.step is None:
            return self.message
        return f"Step {self.step.index} ({self.step.name}): {self.message}"


class MissingKey(PipelineError):
    """Raised when a config store lookup finds no value for a key."""

    def __init__(self, key: str):
        super().__init__(f"Key '{key}' is not set in the config store.")
        self.key = key


class KeyAlreadySet(PipelineError):
    """Raised when a config store key is written more than once."""

    def __init__(self, key: str, value: Any = None):
        if value is None:
            message = f"Key '{key}' is already set; refusing to overwrite."
        else:
            message = f"Key '{key}' is already set to {value!r}; refusing to overwrite."
        super().__init__(message)
        self.key = key
        self.value = value


class ArityMismatch(PipelineError):
    """Raised when ABI types and values have different lengths."""

    def __init__(self, expected: int, got: int, context: Optional[str] = None):
        message = f"Arity mismatch - {expected} type(s) but {got} value(s)"
        if context:
            message = f"{message} for {context}"
        super().__init__(f"{message}.")
        self.expected = expected
        self.got = got


class InvalidValue(PipelineError):
    """Raised when a value cannot be ABI-encoded as its declared type."""


class InvalidPipeline(PipelineError):
    """Raised when a pipeline file is malformed."""


class DeploymentFailed(PipelineError):
    """Raised when the deployment backend reports an error."""

    def __init__(self, contract_name: str, cause: BaseException):
        super().__init__(f"Deployment of {contract_name} failed: {cause}")
        self.contract_name = contract_name
        self.cause = cause
