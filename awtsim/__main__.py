import sys

from awtsim.main import main

sys.exit(main())
