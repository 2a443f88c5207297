"""
Точка входа для запуска через python -m household_ledger
"""
from household_ledger.cli import main

if __name__ == "__main__":
    main()
