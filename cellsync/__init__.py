"""cellsync - CRM contact sync for SMS agent cells."""
