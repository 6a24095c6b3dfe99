"""CLI subcommands: ``run`` and ``check``."""
