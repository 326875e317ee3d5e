"""mcpadvisor: recommend MCP servers for a task by searching several registries."""

__version__ = "0.1.0"
