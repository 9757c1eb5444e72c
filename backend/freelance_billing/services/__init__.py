"""
Service Layer del progetto Freelance Manager.

Ogni modulo espone una classe service e la relativa istanza singleton.
"""
