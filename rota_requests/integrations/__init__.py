"""
External integrations for the Rota Requests service
"""
