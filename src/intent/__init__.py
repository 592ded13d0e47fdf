"""Intent interpretation and validation.

The intent layer converts a free-text contact-management request into a strict `Intent` object
(or a `none` fallback with an explanation) that a downstream app can act on safely.
"""
