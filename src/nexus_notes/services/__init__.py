"""Query services built on top of the storage layer."""
