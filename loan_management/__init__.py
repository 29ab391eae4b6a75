"""
Loan Management Service

Customers register, authenticate, take loans against a credit limit and pay
them down installment by installment. All money math uses Decimal.
"""

__version__ = "1.0.0"
