"""
app/validators package marker.
"""

from app.validators.auto_create_policy import AutoCreatePolicy, PolicyDecision, PolicyOutcome
from app.validators.record_validator import RecordValidator, get_record_validator
from app.validators.summary import summarize_issues

__all__ = [
    "AutoCreatePolicy",
    "PolicyDecision",
    "PolicyOutcome",
    "RecordValidator",
    "get_record_validator",
    "summarize_issues",
]
