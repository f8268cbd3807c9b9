"""Policy — typed access to the JSON configuration."""

from copcore.policy.resolver import PolicyResolver

__all__ = ["PolicyResolver"]
