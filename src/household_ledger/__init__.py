"""
Household Ledger — регулярные доходы и расходы, сверка расписаний и учёт
взаимных долгов с должниками.
"""

__version__ = "1.0.0"
