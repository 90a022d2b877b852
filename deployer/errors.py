"""Exceptions raised by the deployment pipeline."""

from typing import Optional


class DeployScriptError(Exception):
    """Base class for every error the deploy script reports."""


class ConfigError(DeployScriptError):
    """A required setting is missing or invalid."""


class BlueprintNotFoundError(DeployScriptError):
    """The named contract is not among the compiled artifacts."""


class DeploymentError(DeployScriptError):
    """The proxy deployment failed."""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class VerificationError(DeployScriptError):
    """The explorer rejected or never confirmed a verification request."""
