"""Wait for the code server to become ready.

Exits 0 once the server reports it is ready, 1 if the status endpoint could
not be reached, and 2 if the server sent a malformed status record.
"""

import sys

from codeserver_wait.config import (
    ConfigError,
    endpoint_from_env,
    parse_endpoint,
    retry_delay_from_env,
)
from codeserver_wait.probe import EXIT_BAD_STATUS, ReadinessProbe, StatusDecodeError

USAGE = "Usage: codeserver-wait [host:port | socket-path]"


def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) > 1:
        print(USAGE, file=sys.stderr)
        return 1

    try:
        endpoint = parse_endpoint(args[0]) if args else endpoint_from_env()
        retry_delay = retry_delay_from_env()
    except ConfigError as e:
        print(f"{e}\n{USAGE}", file=sys.stderr)
        return 1

    probe = ReadinessProbe(endpoint, retry_delay=retry_delay)
    try:
        return probe.run()
    except StatusDecodeError as e:
        print(e, file=sys.stderr)
        return EXIT_BAD_STATUS


if __name__ == "__main__":
    sys.exit(main())
