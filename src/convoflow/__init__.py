"""convoflow: conversation flow graphs, validation and continuation policy."""

__version__ = "0.1.0"
