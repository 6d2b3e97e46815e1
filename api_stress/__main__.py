import sys

from api_stress.cli import main

sys.exit(main())
