"""nations-graph: succession graph of former countries from Wikipedia infoboxes."""

__version__ = "0.1.0"
