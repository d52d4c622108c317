"""Allow ``python -m punlock``."""

import sys

from punlock.cli import main

sys.exit(main())
