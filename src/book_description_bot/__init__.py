"""
book-description-bot: Fills in missing book descriptions in Notion.

A command-line job that finds books without a description, gathers candidate
blurbs from public book APIs, lets an LLM pick and clean the best one, and
writes it back to the Notion database.
"""

__version__ = "0.1.0"
