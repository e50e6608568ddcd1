"""lexitrack: spaced-review scheduling for a language-learning app."""

__version__ = "1.0.0"
