"""stackhost.stack.errors — Stack error types."""


class StackError(Exception):
    """Base stack error."""
    pass


class OutputsUnavailable(StackError):
    """Outputs were read before the stack finished provisioning."""
    pass


class UnknownOutput(StackError):
    """The provisioned stack has no output with the requested name."""
    pass


class OutputsAlreadySetError(StackError):
    """A stack's outputs were populated a second time."""
    pass


class ProvisioningError(StackError):
    """The backend failed to create, configure or apply a stack."""

    def __init__(self, stack: str, step: str, cause: BaseException):
        self.stack = stack
        self.step = step
        super().__init__(f"Stack '{stack}' failed during {step}: {cause}")


class RefError(StackError):
    """Output placeholder resolution error."""
    pass
