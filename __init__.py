"""Budget Coach package.

Imports bank statements, categorizes spending by keyword rules and coaches a
monthly budget. See ``cli.py`` and ``mcp_server.py`` for entry points.
"""
