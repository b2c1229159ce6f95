import sys

from dualwrite.cli.ingest_cli import main

sys.exit(main())
