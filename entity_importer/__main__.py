import sys

from entity_importer.main import main

sys.exit(main())
