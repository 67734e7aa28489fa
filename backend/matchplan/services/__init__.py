"""
Services Layer

Session-based engine operations that:
- Accept ids and a Session, never HTTP request/response objects
- Validate everything before writing and commit once, so a failed call leaves no partial state
- Raise the typed errors from matchplan.errors; routes translate them
"""
