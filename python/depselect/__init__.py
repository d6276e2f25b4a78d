"""Find the installed dependency directories a JavaScript project must bundle."""

__version__ = "1.0.0"
