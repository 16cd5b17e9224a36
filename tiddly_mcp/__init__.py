"""TiddlyWiki MCP server - expose a tiddler store to MCP clients over HTTP."""

__version__ = "0.1.0"
