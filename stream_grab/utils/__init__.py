"""
Shared models, errors, configuration and file formats for stream-grab.
"""
