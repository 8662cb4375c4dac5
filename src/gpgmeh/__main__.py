"""Allow ``python -m gpgmeh``."""

from gpgmeh.cli import main

raise SystemExit(main())
