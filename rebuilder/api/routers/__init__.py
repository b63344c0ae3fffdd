"""Route modules mounted by :func:`rebuilder.api.app.create_app`."""
