"""Allow ``python -m chromafm.cli`` execution (runs the analyze command)."""

import sys

from chromafm.cli.analyze import main

sys.exit(main())
