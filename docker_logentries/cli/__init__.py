"""docker-logentries CLI — Typer-based command-line interface.

Provides the ``docker-logentries`` command with ``run`` (ship records),
``check`` (validate and display the configuration) and ``version``.

Terminal output uses Rich; diagnostic logs go to stderr.
"""
