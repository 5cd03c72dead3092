import sys

from mt2mseed.cli import main

if __name__ == "__main__":
    sys.exit(main())
