"""
Authentication application.

Accounts, public identity (display name, avatar), push-registration tokens
and user directory search.

Usage:
    from authentication.models import User
    from authentication.services import UserDirectoryService
"""
