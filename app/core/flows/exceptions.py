"""Errors raised while loading tenant flow configuration."""


class FlowConfigError(Exception):
    """Raised when a tenant's flow definition cannot be loaded."""

    def __init__(self, tenant: str, message: str):
        self.tenant = tenant
        super().__init__(message)


class FlowValidationError(FlowConfigError):
    """Raised when a flow violates WhatsApp presentation limits.

    ``violations`` holds every problem found, not just the first one.
    """

    def __init__(self, tenant: str, violations: list[str]):
        self.violations = list(violations)
        message = f"invalid flow for tenant={tenant}:\n- " + "\n- ".join(self.violations)
        super().__init__(tenant, message)
