import sys

from service_search.cli import main

sys.exit(main())
