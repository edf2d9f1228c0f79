"""
Exception classes for the clash triage system.

Centralized location for all custom exceptions to avoid circular imports.
"""


class ClassifierError(Exception):
    """Base exception for all classification-related errors."""
    pass


class ValidationError(Exception):
    """Base exception for validation-related errors."""
    pass


class ConfigurationError(Exception):
    """Base exception for configuration-related errors."""
    pass


class MissingCredentialError(ConfigurationError):
    """Raised when no API key is available for the classification client."""
    pass
