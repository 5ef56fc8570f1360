"""funlib: read, merge, reshape and play back multi-axis funscripts."""

from .core.models import Action, Channel, Metadata, Script
from .dataio.formats import parse_script, serialize_script
from .errors import FormatError, FunlibError, MergeError, TimelineError, TransportError
from .merge.multi_axis import MergeOptions, merge_multi_axis

__version__ = "0.1.0"

__all__ = [
    "Action",
    "Channel",
    "FormatError",
    "FunlibError",
    "MergeError",
    "MergeOptions",
    "Metadata",
    "Script",
    "TimelineError",
    "TransportError",
    "__version__",
    "merge_multi_axis",
    "parse_script",
    "serialize_script",
]
