"""Unified command-line interface for the AV cost tracker.

Usage:
    avk init [--name NAME] [--demo | --from FILE]
    avk item add|edit|delete|list
    avk receipt add|edit|delete|list
    avk line add|edit|remove
    avk allocate LINE ITEM|none
    avk summary
    avk import-invoice <pdf> [--no-edit]
    avk commit-import [draft]
    avk serve [--port]
"""
