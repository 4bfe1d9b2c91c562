"""sozu-acme internal implementation.

This package is not part of the public API and may change at any time.

"""
