import sys

from longreadqc.cli import main

sys.exit(main())
