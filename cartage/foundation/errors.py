"""Error types surfaced by cartage commands.

Every error is fatal to the current run; the CLI converts a `CartageError` into
its `exit_status` and prints the message (unless it is a `QuietExit`).
"""

from __future__ import annotations

from collections.abc import Sequence


class CartageError(Exception):
    exit_status: int = 1


class MissingManifestError(CartageError):
    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or (
                "Cartage cannot create a package without a Manifest.txt file. You may generate\n"
                "or update the Manifest.txt file with the following command:\n"
                "\n"
                "    cartage manifest generate\n"
            )
        )


class EmptyManifestError(CartageError):
    def __init__(self, message: str = "Manifest.txt is empty."):
        super().__init__(message)


class InvalidIgnoreModeError(CartageError):
    exit_status = 64


class ConfigurationError(CartageError, ValueError):
    pass


class ExternalCommandError(CartageError):
    def __init__(self, command: Sequence[str], returncode: int | None = None):
        self.command = [str(part) for part in command]
        self.returncode = returncode
        super().__init__(f"Error running '{' '.join(self.command)}'")


class QuietExit(CartageError):
    """Exit with `exit_status` and no displayed message."""

    def __init__(self, exit_status: int = 1):
        super().__init__("")
        self.exit_status = int(exit_status) or 1


class CustomExit(CartageError):
    def __init__(self, message: str, exit_status: int = 1):
        super().__init__(message)
        self.exit_status = int(exit_status) or 1
