import sys

from bucket_browser.cli import main

sys.exit(main())
