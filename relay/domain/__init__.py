"""Pure domain pieces: credential store, scene serializer, error taxonomy.

Nothing here knows about FastAPI or HTTP clients, so both the server and the
smoke runner can import it.
"""
__all__ = ["credentials", "errors", "scene"]
