"""
Tenancy Kernel

Shared foundation for the tenancy back office:
- Typed, coded exceptions
- Structured JSON logging
- Injectable clock and calendar arithmetic
- Workflow state-machine value types
- SQLAlchemy base classes and engine management
"""

__version__ = "0.1.0"
