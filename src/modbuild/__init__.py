"""modbuild - build order and artifact resolution for C++ module sources."""

__version__ = "0.1.0"
