"""Infrastructure adapters: logging, database, gateways, pacing and queues."""
