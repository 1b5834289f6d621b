"""Allow ``python -m suggestion_engine.cli`` execution."""

import sys

from suggestion_engine.cli.suggestions import main

sys.exit(main())
