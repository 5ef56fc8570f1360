"""Data input/output: wire formats, JSON text layout and files on disk.

- :mod:`formats` maps the 1.0, 1.1, 2.0 and 1.0-list variants to and from
  :class:`~funlib.core.Script`.
- :mod:`json_text` produces the aligned action layout.
- :mod:`script_loader` reads and writes script files.
- :mod:`file_paths` finds script files and names backup archives.
"""

from .formats import DEFAULT_VERSION, VERSIONS, parse_script, parse_scripts, serialize_script
from .script_loader import load_script, load_scripts, save_script

__all__ = [
    "DEFAULT_VERSION",
    "VERSIONS",
    "parse_script",
    "parse_scripts",
    "serialize_script",
    "load_script",
    "load_scripts",
    "save_script",
]
