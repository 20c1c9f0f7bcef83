"""Domain Layer: models, interfaces (ports) and events of points quoting.

Has no dependencies on the core or infrastructure layers.
"""
