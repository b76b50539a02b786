"""Quest: a tool-calling conversational agent orchestrator."""

__version__ = "0.1.0"
