# nxqchem/util/errors.py


class InterfaceError(Exception):
    """Base class for every failure of a Newton-X timestep."""


class MissingInputError(InterfaceError):
    """An input file is absent, or a file is truncated."""


class ParseError(MissingInputError):
    """A report block started but its data rows are missing or malformed."""

    def __init__(self, message, line_no=None):
        if line_no is not None:
            message = f"{message} (line {line_no + 1})"
        super().__init__(message)
        self.line_no = line_no


class StructuralMismatchError(InterfaceError):
    """The output does not have the block structure the run expects."""


class ExternalProcessError(InterfaceError):
    def __init__(self, cmd, returncode, message=""):
        self.cmd = cmd
        self.returncode = returncode
        text = f"Command '{cmd}' exited with status {returncode}"
        if message:
            text = f"{message}: {text}"
        super().__init__(text)


class ConfigError(InterfaceError):
    """A configuration value is outside what the interface accepts."""
