"""
Domain layer: descriptor models, phase editing, the collection entity and renderers.
"""
