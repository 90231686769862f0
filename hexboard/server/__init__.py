"""FastAPI backend: persistence, sharing, auth and the collaboration room broker."""
