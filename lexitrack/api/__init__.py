"""REST API for the lexitrack review service."""
