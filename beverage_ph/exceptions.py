"""Errors raised by the pipeline stages."""


class SchemaError(ValueError):
    """An expected column is missing, misnamed, or has the wrong type."""


class ImputationError(ValueError):
    """A column cannot be imputed, e.g. it has too few observed donors."""
