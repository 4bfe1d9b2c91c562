"""Runs sozu-acme."""
import sys

from sozu_acme._internal import main

if __name__ == '__main__':
    sys.exit(main.main())
