"""Build and run Go test runners for Gherkin feature suites, with colour, formatter and option helpers."""

__version__ = "0.1.0"

__all__ = ["colors", "formatters", "options", "legacy_flags", "builder", "cli"]