"""AWS toolkit entry point: prints the effective configuration."""

import logging
import sys

from aws_toolkit.config import ConfigurationError, get_settings
from aws_toolkit.version import __version__


def main() -> int:
    """Main entry point for the application.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("AWS Toolkit")
    print(f"Version: {__version__}")
    print()
    print(settings.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())
