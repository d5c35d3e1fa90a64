"""Budget Ledger: double-entry bookkeeping and budgeting engine."""
