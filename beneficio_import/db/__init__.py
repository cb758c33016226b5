"""Record stores: contract, in-memory store and PostgreSQL store."""
