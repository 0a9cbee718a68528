"""
Sigil - signing identities for kettle transactions.
"""
