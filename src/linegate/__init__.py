"""linegate -- WebSocket gateway for a shared line-oriented command interpreter.

Many text clients connect over WebSockets and send short commands. Every
command is framed, handed to one shared interpreter, and the interpreter's
output is routed back to the client that sent it.
"""

__version__ = "0.1.0"
