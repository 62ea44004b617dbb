"""Centralized exit codes for the sourcedex CLI."""


class ExitCodes:
    """Standard exit codes for sourcedex runs."""

    SUCCESS = 0

    FAILURE = 1
    USAGE = 2

    INTERRUPTED = 130

    @classmethod
    def get_description(cls, code: int) -> str:
        """Get human-readable description for an exit code."""
        descriptions = {
            cls.SUCCESS: "Success",
            cls.FAILURE: "Run aborted by a fatal error",
            cls.USAGE: "Invalid command line",
            cls.INTERRUPTED: "Interrupted by user",
        }
        return descriptions.get(code, f"Unknown exit code: {code}")
