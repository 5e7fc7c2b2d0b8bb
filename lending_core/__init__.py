"""
Lending Core

Calculation core for weekly-installment microcredit loans: active-week
calendar math, Cartera Vencida classification, Decimal-exact profit splits,
arrears simulation and payment chronology reconstruction.
"""

__version__ = "1.0.0"
