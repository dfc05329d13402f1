"""Error taxonomy shared by the session agents and the traversal machine."""
from typing import Optional


class LabMirrorError(Exception):
    """Base class for every error raised by labmirror."""


class ConfigError(LabMirrorError):
    """Settings are missing or unusable."""


class ElementNotFound(LabMirrorError):
    """A required element is absent. Probes never raise this; callers do."""

    def __init__(self, kind: str, detail: str = ""):
        self.kind = kind
        super().__init__(f"{kind} not found" + (f": {detail}" if detail else ""))


class SessionExpired(LabMirrorError):
    """The platform bounced us to a login page; re-login and retry the call."""

    def __init__(self, url: str = "", role: Optional[str] = None):
        self.url = url
        self.role = role
        super().__init__(f"session expired (url={url or '?'})")


class LoginFailure(LabMirrorError):
    pass


class NavigationFailure(LabMirrorError):
    pass


class ExtractionFailure(LabMirrorError):
    """The current level could not be read: every channel came back empty or the page failed mid-read."""


class EvaluationAmbiguous(LabMirrorError):
    """Neither success nor failure markers showed up before the timeout."""
