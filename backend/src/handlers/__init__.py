"""Lambda handlers for the Feedback Radar backend.

Import the handler modules directly (``handlers.api_handler``,
``handlers.analysis_worker``); each one creates its AWS clients lazily.
"""
