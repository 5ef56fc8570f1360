"""Command line tools and development helpers.

This package holds the ``funlib-merge`` entry point (:mod:`merge_cli`) and the
opt-in timing helpers in :mod:`debug` used by the playback loop.
"""
