import sys

from seatfinder.cli import main

sys.exit(main())
