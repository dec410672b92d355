"""adsync: declarative Active Directory state reconciler."""

__version__ = "0.1.0"
