"""Shell-level adapters: subprocess execution and file access."""
