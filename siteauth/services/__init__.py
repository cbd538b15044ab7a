"""Integrations with the credential store, mail relay and object store."""
