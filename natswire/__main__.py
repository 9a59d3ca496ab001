import sys

from natswire.cli import main

sys.exit(main())
