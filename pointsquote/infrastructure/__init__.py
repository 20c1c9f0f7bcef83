"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (FX and promotion services,
metrics, configuration files, the console) by implementing the interfaces
defined in the domain layer. Also includes the resilience services.
"""
