import sys

from .openplc_node_plugin import main

sys.exit(main())
