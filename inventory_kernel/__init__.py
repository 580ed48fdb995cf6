"""
Inventory Kernel

An append-only stock ledger for a network of branches and a central store:
- Immutable transaction log (opening stock, purchase, issue, return, damage)
- Weighted-average valuation derived on read
- Issue -> consumption -> return lifecycle tracking
- Stock, adjustment and return request workflows with atomic resolution
"""

__version__ = "0.1.0"
