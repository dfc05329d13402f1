# Lab mirror: copy a finished account's lab work into another account – public API

from .agent import Role, SessionAgent
from .config import Credentials, Settings, Timeouts, load_settings, mask_identifier
from .content import ChoiceAnswer, ChoiceContent, CodeContent, SkipContent, SkipReason
from .errors import (
    ConfigError,
    ElementNotFound,
    EvaluationAmbiguous,
    ExtractionFailure,
    LabMirrorError,
    LoginFailure,
    NavigationFailure,
    SessionExpired,
)
from .locator import NOT_FOUND, ElementDescriptor, resolve
from .metrics import ExperimentStatus, LabRecord, LevelRecord, LevelStatus, RunReporter, RunSummary, write_results
from .runner import list_labs, run_mirror, setup_logging
from .traversal import LabTraversal, State

__all__ = [
    "Role",
    "SessionAgent",
    "Credentials",
    "Settings",
    "Timeouts",
    "load_settings",
    "mask_identifier",
    "ChoiceAnswer",
    "ChoiceContent",
    "CodeContent",
    "SkipContent",
    "SkipReason",
    "ConfigError",
    "ElementNotFound",
    "EvaluationAmbiguous",
    "ExtractionFailure",
    "LabMirrorError",
    "LoginFailure",
    "NavigationFailure",
    "SessionExpired",
    "NOT_FOUND",
    "ElementDescriptor",
    "resolve",
    "ExperimentStatus",
    "LabRecord",
    "LevelRecord",
    "LevelStatus",
    "RunReporter",
    "RunSummary",
    "write_results",
    "list_labs",
    "run_mirror",
    "setup_logging",
    "LabTraversal",
    "State",
]
