class SheetError(Exception):
    """Base class for every error raised by cellgraph."""


class IdentifierFormatError(SheetError, ValueError):
    """Raised when a cell id does not look like `A1`, `BB8`, `RU37`..."""


class FormulaSyntaxError(SheetError):
    pass


class TokenizerError(FormulaSyntaxError):
    pass


class ParseError(FormulaSyntaxError):
    pass


class CycleError(SheetError):
    """Raised when an edit would make the dependency graph cyclic.

    `path` holds the offending cycle, starting and ending on the same id.
    """

    def __init__(self, message: str, path: "tuple[str, ...]" = ()):
        super().__init__(message)
        self.path = tuple(path)


class EvaluationError(SheetError):
    """A formula references a blank, text or erroring cell."""
