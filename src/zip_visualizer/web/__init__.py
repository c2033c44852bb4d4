"""
Web GUI module for the zip demo.

Provides HTTP server with:
- Demo page (Emit A / Emit B / Reset, queues and output)
- JSON API endpoints for the display snapshot and user actions
- Server-Sent Events for live updates
"""

from .web_server import WebServer

__all__ = ['WebServer']
