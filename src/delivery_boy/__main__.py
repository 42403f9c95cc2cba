import sys

from delivery_boy.cli.run import main

if __name__ == "__main__":
    sys.exit(main())
