"""
Freelance Manager - Billing Core
Progetto: Freelance Manager (Gestionale Freelance)

Motore di ciclo di vita dei documenti di fatturazione (preventivi e fatture)
e di aggregazione finanziaria per clienti e portafoglio.
"""

__version__ = "1.0.0"
