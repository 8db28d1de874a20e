"""
Custom exceptions for MDB_AUTHZ.

Every error raised by the engine derives from AuthzError, which keeps
compatibility with RuntimeError while carrying a context dictionary that
is rendered into the message.
"""

from typing import Any, Dict, Optional


class AuthzError(RuntimeError):
    """
    Base exception for MDB_AUTHZ errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (section,
                 field, operation, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ModelSyntaxError(AuthzError):
    """
    Raised when model definition text cannot be parsed.

    Fatal at load time: the model is unusable and the enforcer is never
    built from it.

    Attributes:
        section: Model section that failed (e.g. "matchers")
        reason: Human readable reason
    """

    def __init__(
        self,
        section: str,
        reason: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["section"] = section
        super().__init__(f"Invalid model [{section}]: {reason}", context=context)
        self.section = section
        self.reason = reason


class ShapeMismatch(AuthzError):
    """
    Raised when a request or rule does not match its definition's arity.

    Attributes:
        definition: Definition key the values were checked against ("r", "p", "g", ...)
        expected: Number of fields the definition declares
        actual: Number of fields supplied
    """

    def __init__(
        self,
        definition: str,
        expected: int,
        actual: int,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context.update({"definition": definition, "expected": expected, "actual": actual})
        super().__init__(
            f"'{definition}' expects {expected} fields, got {actual}", context=context
        )
        self.definition = definition
        self.expected = expected
        self.actual = actual


class UnknownField(AuthzError):
    """
    Raised when a matcher references a field or relation that the model
    does not declare.

    Attributes:
        field: The offending reference (e.g. "r.tenant")
        definition: Definition the reference was resolved against
    """

    def __init__(
        self,
        field: str,
        definition: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context.update({"field": field, "definition": definition})
        super().__init__(f"Unknown field '{field}' in '{definition}'", context=context)
        self.field = field
        self.definition = definition


class NotInitialized(AuthzError):
    """
    Raised when an enforcer is used before a model and an adapter are attached.

    Attributes:
        missing: Names of the missing collaborators
    """

    def __init__(self, missing: tuple[str, ...], context: Optional[Dict[str, Any]] = None) -> None:
        context = context or {}
        context["missing"] = ",".join(missing)
        super().__init__("Enforcer is not initialized", context=context)
        self.missing = missing


class PersistenceError(AuthzError):
    """
    Raised when an adapter fails to load or save rules.

    The in-memory rule store is never modified when this is raised.

    Attributes:
        operation: Adapter operation that failed ("load", "save", "add", "remove")
        adapter: Adapter class name (if available)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        adapter: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if operation:
            context["operation"] = operation
        if adapter:
            context["adapter"] = adapter
        super().__init__(message, context=context)
        self.operation = operation
        self.adapter = adapter


class ConfigurationError(AuthzError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value
