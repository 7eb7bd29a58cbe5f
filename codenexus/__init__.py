"""Tags, comments and relations for the files of a code base, with a JSON-RPC tool server."""

__version__ = "0.1.3"