"""Allow ``python -m nmea_relay`` to launch the relay."""

from __future__ import annotations

import sys

from nmea_relay import run


def main() -> int:
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
