"""Allow running as ``python -m packsource``."""

from .cli import main

if __name__ == "__main__":
    main()
