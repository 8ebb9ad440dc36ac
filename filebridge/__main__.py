import sys

from filebridge.cli import main

sys.exit(main())
