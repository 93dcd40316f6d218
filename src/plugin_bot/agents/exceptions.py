"""Exceptions for agent operations."""


class AgentError(Exception):
    """Base exception for all agent operations."""


class ModelClientError(AgentError):
    """Base exception for model collaborator failures."""


class ModelConfigError(ModelClientError):
    """Raised when no usable provider is configured."""


class ModelCallError(ModelClientError):
    """Raised when every provider in the chain failed to answer."""


class GenerationError(AgentError):
    """Raised when plugin generation fails to complete."""


class RequestValidationError(GenerationError):
    """Raised when a generation request has an invalid name or requirements."""


class ProjectStoreError(AgentError):
    """Raised when a project cannot be read from or written to disk."""


class OperationError(AgentError):
    """Base exception for file operation failures."""


class UnsafePathError(OperationError):
    """Raised when a path would resolve outside the project root."""
