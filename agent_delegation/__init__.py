"""Agent Delegation - route messages and workflows across specialist agents."""

__version__ = "0.1.0"
