"""Summary orchestration: types, errors and the request state machine."""

from aiss.summary.errors import ErrorKind, SummaryError
from aiss.summary.models import ClientInfo, Source, SummaryResponse, SummaryResult

__all__ = [
    "ClientInfo",
    "ErrorKind",
    "Source",
    "SummaryError",
    "SummaryResponse",
    "SummaryResult",
]
