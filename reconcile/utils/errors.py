# reconcile/utils/errors.py


class SchemaError(ValueError):
    """A reference dataset is missing a required column or field."""


class ParseError(ValueError):
    """Claim markup could not be parsed."""
