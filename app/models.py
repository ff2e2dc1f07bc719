# models.py
# 資料庫模型定義（客戶、申報期別、發票、折讓單、發票字軌）

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey

db = SQLAlchemy()


class Client(db.Model):
    """客戶（營業人）"""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    contact_person = Column(String(100), nullable=True)
    tax_id = Column(String(8), nullable=False, index=True)          # 統一編號
    tax_payer_id = Column(String(9), nullable=False)                # 稅籍編號
    industry = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # 關聯
    periods = db.relationship("TaxFilingPeriod", back_populates="client", cascade="all, delete-orphan")
    invoice_ranges = db.relationship("InvoiceRange", back_populates="client", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'contact_person': self.contact_person,
            'tax_id': self.tax_id,
            'tax_payer_id': self.tax_payer_id,
            'industry': self.industry,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class TaxFilingPeriod(db.Model):
    """申報期別 - year_month 為期別起始月 (YYYMM)"""
    __tablename__ = "tax_filing_periods"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    year_month = Column(String(5), nullable=False)
    month_span = Column(Integer, default=2, nullable=False)  # 1=按月, 2=雙月
    status = Column(String(20), default="open", nullable=False)  # open, locked, filed

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 關聯
    client = db.relationship("Client", back_populates="periods")

    __table_args__ = (
        db.UniqueConstraint('client_id', 'year_month', name='uq_client_period'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'year_month': self.year_month,
            'month_span': self.month_span,
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class Invoice(db.Model):
    """發票 - extracted_data 為審核後的發票欄位（中文列舉值）"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    tax_filing_period_id = Column(Integer, ForeignKey("tax_filing_periods.id", ondelete="SET NULL"),
                                  nullable=True, index=True)

    filename = Column(String(255), nullable=True)
    in_or_out = Column(String(3), nullable=False)   # in, out
    status = Column(String(20), default="uploaded", nullable=False, index=True)  # uploaded, processing, processed, confirmed, failed
    invoice_serial_code = Column(String(10), nullable=True, index=True)
    extracted_data = Column(JSON, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'tax_filing_period_id': self.tax_filing_period_id,
            'filename': self.filename,
            'in_or_out': self.in_or_out,
            'status': self.status,
            'invoice_serial_code': self.invoice_serial_code,
            'extracted_data': self.extracted_data,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Allowance(db.Model):
    """折讓單"""
    __tablename__ = "allowances"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    tax_filing_period_id = Column(Integer, ForeignKey("tax_filing_periods.id", ondelete="SET NULL"),
                                  nullable=True, index=True)

    in_or_out = Column(String(3), nullable=False)
    status = Column(String(20), default="uploaded", nullable=False, index=True)
    allowance_serial_code = Column(String(50), nullable=True)
    original_invoice_serial_code = Column(String(10), nullable=True, index=True)
    extracted_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'tax_filing_period_id': self.tax_filing_period_id,
            'in_or_out': self.in_or_out,
            'status': self.status,
            'allowance_serial_code': self.allowance_serial_code,
            'original_invoice_serial_code': self.original_invoice_serial_code,
            'extracted_data': self.extracted_data,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class InvoiceRange(db.Model):
    """發票字軌區間 - 用於計算空白未使用發票"""
    __tablename__ = "invoice_ranges"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    year_month = Column(String(5), nullable=False, index=True)
    invoice_type = Column(String(20), nullable=False)
    start_number = Column(String(10), nullable=False)
    end_number = Column(String(10), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # 關聯
    client = db.relationship("Client", back_populates="invoice_ranges")

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'year_month': self.year_month,
            'invoice_type': self.invoice_type,
            'start_number': self.start_number,
            'end_number': self.end_number,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
