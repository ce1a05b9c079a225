"""DialogLoom: context-aware AI regeneration of dialog graphs."""

__version__ = "0.1.0"
