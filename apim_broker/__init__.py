"""Service broker that provisions API Manager applications and subscriptions."""

__version__ = "0.1.0"
