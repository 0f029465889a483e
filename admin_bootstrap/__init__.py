"""Bootstrap or reset the default admin user of a Rancher-managed cluster."""

__version__ = "0.1.0"
