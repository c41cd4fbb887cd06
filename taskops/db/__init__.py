"""TaskOps Database — declarative base, models, engine registry and sessions."""
