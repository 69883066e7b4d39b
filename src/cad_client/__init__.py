"""CAD client - SAML 2.0 bearer assertion authentication for the customer account data API."""

__version__ = "0.1.0"
