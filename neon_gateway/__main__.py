import sys

from neon_gateway.cli import main

sys.exit(main())
