"""Label names managed by triage."""

from enum import Enum


class IssueLabel(str, Enum):
    NEEDS_REPRODUCTION = "needs reproduction"
    POSSIBLE_REGRESSION = "possible regression"
    PENDING_TRIAGE = "pending triage"
    # Server runtime issues are tracked under the runtime's own label
    RUNTIME_SUBSYSTEM = "nitro"
    SPAM = "spam"
