# app/api/socketio/__init__.py

"""
Socket.IO namespaces for real-time features

Active namespaces:
- /chat: chat room subscriptions and chatUpdate delivery

Namespaces are constructed in main.create_app() with the shared
RoomBroadcaster and registered on the server there.
"""

from .chat_namespace import ChatNamespace


__all__ = ['ChatNamespace']
