"""Transaction Model - One row per ownership change"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Index
from app.database import Base


class TransactionRow(Base):
    """Transaction Model

    Append-only ledger of hostile takeovers
    Rows are inserted once and never updated
    """
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    alpaca_id = Column(Integer, ForeignKey("alpacas.id"), nullable=False)

    previous_owner = Column(String(50), nullable=False)
    new_owner = Column(String(50), nullable=False)
    amount = Column(Numeric(precision=20, scale=2), nullable=False)

    occurred_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_transaction_alpaca_occurred', 'alpaca_id', 'occurred_at'),
    )

    def __repr__(self):
        return f"<TransactionRow(id={self.id}, alpaca_id={self.alpaca_id}, amount={self.amount})>"
