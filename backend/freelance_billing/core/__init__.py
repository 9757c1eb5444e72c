"""
Core dell'applicazione: configurazione, eccezioni, logging e database.
"""
