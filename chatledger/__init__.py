# -*- coding: utf-8 -*-
"""
chatledger - conversational transaction resolution for household budgets.

Turns chat messages ("gastei 50 no mercado") and voice notes into ledger
mutations, asking the user whenever the resolution is not confident enough.
"""

__version__ = "1.0.0"
