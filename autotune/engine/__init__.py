from .controller import ExecutionController
from .directives import DirectiveMutator
from .options import merge_options, parse_options
from .records import RecordTransformer, rewrite_option_line, transform_records

__all__ = [
    "ExecutionController",
    "DirectiveMutator",
    "RecordTransformer",
    "merge_options",
    "parse_options",
    "rewrite_option_line",
    "transform_records",
]
