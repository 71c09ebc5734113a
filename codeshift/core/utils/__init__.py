from .text import extract_balanced_object, parse_json_object, strip_code_fences
from .token_counter import TokenCounter

__all__ = [
    "TokenCounter",
    "extract_balanced_object",
    "parse_json_object",
    "strip_code_fences",
]
