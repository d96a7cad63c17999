from app.business.finance.models import ClientPayment, Invoice, Transaction

__all__ = ["ClientPayment", "Invoice", "Transaction"]
