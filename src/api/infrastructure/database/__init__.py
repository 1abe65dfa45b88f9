"""Database engine, session dependency and ORM base for the provisioning store."""
