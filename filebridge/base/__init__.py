"""Foundational pieces shared by the client and the web server."""
#
# WHAT'S IN THIS MODULE:
# - config.py: Server, backend, event and logging settings loaded from the environment
#
