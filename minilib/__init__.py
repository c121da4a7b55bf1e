"""Mini Library Manager - Core Application Package

This package contains the core application modules including:
- Catalog store and status transitions (library.py)
- CLI menu and commands (main.py)
- Data model (book.py)
- Database layer (database.py)
"""

__version__ = "1.0.0"
