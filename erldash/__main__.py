from __future__ import annotations

import sys

from erldash.cli import main

sys.exit(main())
