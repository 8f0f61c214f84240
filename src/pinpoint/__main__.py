import sys

from pinpoint.cli import main

sys.exit(main())
