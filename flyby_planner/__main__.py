import sys

from flyby_planner.cli import main

if __name__ == '__main__':
    sys.exit(main())
