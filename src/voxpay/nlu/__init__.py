from .fallback import parse_transfer_message
from .request import ParsedRequest
from .selection import match_selection

__all__ = ["ParsedRequest", "parse_transfer_message", "match_selection"]
