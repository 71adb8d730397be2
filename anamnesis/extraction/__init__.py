from .client import request_extraction
from .exporter import to_csv
from .index import build_index
from .parser import parse_response
from .prompts import build_prompt
from .reconciler import normalize, select_answer

__all__ = [
    "build_index",
    "build_prompt",
    "request_extraction",
    "parse_response",
    "normalize",
    "select_answer",
    "to_csv",
]
