"""KYS Portal API - Know Your School registration and approval workflow."""

__version__ = "0.1.0"
