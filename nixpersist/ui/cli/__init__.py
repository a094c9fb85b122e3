"""CLI subcommands, one module per persistence mechanism."""
