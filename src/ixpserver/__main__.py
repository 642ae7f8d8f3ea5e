"""Allow ``python -m ixpserver``."""

from ixpserver.server import main

if __name__ == "__main__":
    main()
