"""
HR Kernel - shared foundation for the payroll generation engine.

Provides:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy base classes, engine management and immutability guards
- Injectable clock and period (month/year) value objects
"""

__version__ = "0.1.0"
