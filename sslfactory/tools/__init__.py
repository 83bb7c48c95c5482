"""Command line tools for sslfactory."""
