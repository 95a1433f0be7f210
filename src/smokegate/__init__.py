"""smokegate - layered smoke checks that gate deployments."""

__version__ = "0.1.0"
