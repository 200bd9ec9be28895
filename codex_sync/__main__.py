import sys

from codex_sync.cli.sync import main

sys.exit(main())
