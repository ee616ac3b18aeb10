import sys

from .extract_proposals import main

sys.exit(main())
