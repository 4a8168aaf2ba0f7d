import sys

from gopro_sync.app import main

sys.exit(main())
