# Folder: autoops/agent/errors.py
#
# Every failure the pipeline knows how to talk about.
# Stages catch these by class, so keep the hierarchy shallow.


class AutoOpsError(Exception):
    """Base class for all pipeline errors"""


class ProviderError(AutoOpsError):
    """Reasoning provider failed: transport error, bad response, unparseable JSON"""


class ProviderTimeout(ProviderError):
    """Reasoning provider did not answer before the stage timeout"""


class ProviderNotConfigured(AutoOpsError):
    """
    No credential for the selected reasoning provider.
    Not a failure - the pipeline routes straight to fallback logic.
    """


class DecisionValidationError(AutoOpsError):
    """Provider returned a decision outside the valid-action set (or no reason)"""


class ExecutionFailure(AutoOpsError):
    """A side-effecting action failed (e.g. filesystem write)"""


class MetricsProviderError(AutoOpsError):
    """A monitoring integration could not produce a snapshot"""


class IngestionFailure(AutoOpsError):
    """Metrics source failed and there was no fallback path"""
