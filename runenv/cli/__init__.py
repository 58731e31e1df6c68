"""runenv CLI: Typer + Rich command-line interface."""
