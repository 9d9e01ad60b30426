"""Orchestria: décomposition de tâches et exécution par phases."""
__version__ = "0.1.0"
