"""Manage EKS addons as tracked resources with provider-level tag policies."""
