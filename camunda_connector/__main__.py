"""Entry point for the connector package.

Usage::

    python -m camunda_connector my_connectors.mail:MailProcessor

All settings come from environment variables (see ``config.py``).
"""

from __future__ import annotations

import sys


def main() -> None:
    if len(sys.argv) != 2:
        print("Usage: python -m camunda_connector <module:ProcessorClass>", file=sys.stderr)
        sys.exit(2)

    from .runner import load_processor, run_connector

    processor = load_processor(sys.argv[1])
    sys.exit(run_connector(processor))


if __name__ == "__main__":
    main()
