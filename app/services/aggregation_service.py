# aggregation_service.py
# 將已確認發票與折讓單彙總為 401 申報書各欄位金額

import logging
from dataclasses import dataclass, field, asdict
from typing import Iterable, Optional, Tuple

from app.errors import UnsupportedInvoiceTypeError, UnsupportedTaxTypeError, UnsupportedDirectionError
from app.records import (
    TaxType, InvoiceType, InOrOut, DeductionCode, InvoiceRecord, AllowanceRecord,
)
from app.utils.field_format import round_half_up

logger = logging.getLogger(__name__)

# 營業稅徵收率
VAT_RATE = 0.05


@dataclass
class SalesTax:
    sales: int = 0
    tax: int = 0

    def add(self, sales: int, tax: int):
        self.sales += sales
        self.tax += tax


@dataclass
class ZeroTaxTotals:
    with_documents: int = 0          # 非經海關出口應附證明文件者
    without_documents: int = 0       # 經海關出口免附證明文件者
    returns_and_allowances: int = 0
    total: int = 0


@dataclass
class OutputTotals:
    """銷項"""
    triplicate: SalesTax = field(default_factory=SalesTax)
    cash_register_and_electronic: SalesTax = field(default_factory=SalesTax)
    duplicate_cash_register: SalesTax = field(default_factory=SalesTax)
    exempt_from_issuance: SalesTax = field(default_factory=SalesTax)
    returns_and_allowances: SalesTax = field(default_factory=SalesTax)
    total_sales: int = 0
    total_tax: int = 0
    sales_without_invoice: int = 0
    zero_tax: ZeroTaxTotals = field(default_factory=ZeroTaxTotals)
    land_sales: int = 0
    fixed_asset_sales: int = 0


@dataclass
class InputBucket:
    purchases_and_expenses: int = 0
    fixed_assets: int = 0
    purchases_and_expenses_tax: int = 0
    fixed_assets_tax: int = 0

    def add(self, sales: int, tax: int, is_fixed_asset: bool):
        if is_fixed_asset:
            self.fixed_assets += sales
            self.fixed_assets_tax += tax
        else:
            self.purchases_and_expenses += sales
            self.purchases_and_expenses_tax += tax


@dataclass
class InputTotals:
    """進項"""
    triplicate: InputBucket = field(default_factory=InputBucket)
    cash_register_and_electronic: InputBucket = field(default_factory=InputBucket)
    other_certificates: InputBucket = field(default_factory=InputBucket)
    returns_and_allowances: InputBucket = field(default_factory=InputBucket)
    total_purchases_and_expenses: int = 0
    total_fixed_assets: int = 0
    total_purchases_and_expenses_tax: int = 0
    total_fixed_assets_tax: int = 0
    total_purchases_and_expenses_all: int = 0
    total_fixed_assets_all: int = 0


@dataclass
class AggregatedTotals:
    invoice_count: int = 0
    output: OutputTotals = field(default_factory=OutputTotals)
    input: InputTotals = field(default_factory=InputTotals)
    # 無買受人統編（B2C）的含稅銷售額與回推稅額
    consumer_sales: int = 0
    consumer_tax: int = 0

    def to_dict(self):
        return asdict(self)


def consumer_tax_portion(consumer_sales: int) -> int:
    """
    非營業人買受之含稅銷售額回推稅額

    銷項稅額 = 含稅總額 ÷ (1 + 徵收率) × 徵收率（四捨五入）
    """
    return round_half_up(consumer_sales / (1 + VAT_RATE) * VAT_RATE)


def _output_category(totals: OutputTotals, invoice: InvoiceRecord) -> SalesTax:
    invoice_type = invoice.invoice_type
    if invoice_type == InvoiceType.MANUAL_TRIPLICATE:
        return totals.triplicate
    if invoice_type is not None and invoice_type.is_cash_register_or_electronic:
        return totals.cash_register_and_electronic
    if invoice_type is not None and invoice_type.is_duplicate:
        return totals.duplicate_cash_register
    raise UnsupportedInvoiceTypeError(invoice_type, invoice.invoice_serial_code)


def _input_category(totals: InputTotals, invoice: InvoiceRecord) -> InputBucket:
    invoice_type = invoice.invoice_type
    if invoice_type == InvoiceType.MANUAL_TRIPLICATE:
        return totals.triplicate
    if invoice_type is not None and invoice_type.is_cash_register_or_electronic:
        return totals.cash_register_and_electronic
    if invoice_type is not None and invoice_type.is_duplicate:
        return totals.other_certificates
    raise UnsupportedInvoiceTypeError(invoice_type, invoice.invoice_serial_code)


def accumulate_output_invoices(totals: OutputTotals, invoices: Iterable[InvoiceRecord]) -> int:
    """
    累加銷項發票

    Returns:
        無買受人統編的應稅含稅銷售額，供後續回推稅額
    """
    consumer_sales = 0

    for invoice in invoices:
        sales, tax = invoice.total_sales, invoice.tax

        if invoice.tax_type == TaxType.TAXABLE:
            _output_category(totals, invoice).add(sales, tax)
            if not invoice.buyer_tax_id:
                consumer_sales += sales
        elif invoice.tax_type == TaxType.ZERO_RATE:
            # TODO: 區分經海關/非經海關出口，目前一律歸入經海關出口免附證明文件者
            totals.zero_tax.without_documents += sales
        elif invoice.tax_type == TaxType.EXEMPT:
            totals.exempt_from_issuance.add(sales, tax)
        elif invoice.tax_type == TaxType.VOID:
            logger.info(f"略過作廢發票: {invoice.invoice_serial_code}")
            continue
        else:
            raise UnsupportedTaxTypeError(invoice.tax_type, invoice.invoice_serial_code)

        if invoice.is_land:
            totals.land_sales += sales
        if invoice.is_fixed_asset:
            totals.fixed_asset_sales += sales

    return consumer_sales


def accumulate_input_invoices(totals: InputTotals, invoices: Iterable[InvoiceRecord]):
    """累加進項發票；只有可扣抵的應稅發票計入扣抵欄位，進項總金額不論是否可扣抵"""
    for invoice in invoices:
        if invoice.tax_type is None or invoice.tax_type == TaxType.AGGREGATE:
            raise UnsupportedTaxTypeError(invoice.tax_type, invoice.invoice_serial_code)
        if invoice.tax_type != TaxType.TAXABLE:
            continue

        sales, tax = invoice.total_sales, invoice.tax
        is_fixed_asset = invoice.is_fixed_asset

        if invoice.deductible:
            _input_category(totals, invoice).add(sales, tax, is_fixed_asset)

        if is_fixed_asset:
            totals.total_fixed_assets_all += sales
        else:
            totals.total_purchases_and_expenses_all += sales


def accumulate_allowances(output: OutputTotals, input_totals: InputTotals,
                          allowances: Iterable[AllowanceRecord]):
    """累加退回及折讓"""
    for allowance in allowances:
        sales, tax = allowance.total_amount, allowance.total_tax_amount

        if allowance.in_or_out == InOrOut.OUTPUT:
            if allowance.tax_type == TaxType.ZERO_RATE:
                output.zero_tax.returns_and_allowances += sales
            else:
                output.returns_and_allowances.add(sales, tax)
        else:
            is_fixed_asset = allowance.deduction_code == DeductionCode.FIXED_ASSETS
            input_totals.returns_and_allowances.add(sales, tax, is_fixed_asset)


def apply_consumer_tax_adjustment(output: OutputTotals, consumer_sales: int) -> int:
    """將 B2C 含稅銷售額回推之稅額，由收銀機/電子發票銷售額移至稅額"""
    consumer_tax = consumer_tax_portion(consumer_sales)
    output.cash_register_and_electronic.sales -= consumer_tax
    output.cash_register_and_electronic.tax += consumer_tax
    return consumer_tax


def compute_output_totals(output: OutputTotals):
    output.total_sales = (output.triplicate.sales
                          + output.cash_register_and_electronic.sales
                          + output.duplicate_cash_register.sales
                          + output.exempt_from_issuance.sales
                          - output.returns_and_allowances.sales)
    output.total_tax = (output.triplicate.tax
                        + output.cash_register_and_electronic.tax
                        + output.duplicate_cash_register.tax
                        + output.exempt_from_issuance.tax
                        - output.returns_and_allowances.tax)
    output.zero_tax.total = (output.zero_tax.with_documents
                             + output.zero_tax.without_documents
                             - output.zero_tax.returns_and_allowances)


def compute_input_totals(input_totals: InputTotals):
    buckets = (input_totals.triplicate, input_totals.cash_register_and_electronic,
               input_totals.other_certificates)
    returns = input_totals.returns_and_allowances

    input_totals.total_purchases_and_expenses = \
        sum(b.purchases_and_expenses for b in buckets) - returns.purchases_and_expenses
    input_totals.total_fixed_assets = \
        sum(b.fixed_assets for b in buckets) - returns.fixed_assets
    input_totals.total_purchases_and_expenses_tax = \
        sum(b.purchases_and_expenses_tax for b in buckets) - returns.purchases_and_expenses_tax
    input_totals.total_fixed_assets_tax = \
        sum(b.fixed_assets_tax for b in buckets) - returns.fixed_assets_tax


def split_by_direction(invoices: Iterable[InvoiceRecord]) -> Tuple[list, list]:
    """依進銷項分組，缺少進銷項的發票視為資料錯誤"""
    output_invoices, input_invoices = [], []
    for invoice in invoices:
        if invoice.in_or_out == InOrOut.OUTPUT:
            output_invoices.append(invoice)
        elif invoice.in_or_out == InOrOut.INPUT:
            input_invoices.append(invoice)
        else:
            raise UnsupportedDirectionError(invoice.in_or_out, invoice.invoice_serial_code)
    return output_invoices, input_invoices


def aggregate_invoice_data(
    invoices: Iterable[InvoiceRecord],
    allowances: Optional[Iterable[AllowanceRecord]] = None
) -> AggregatedTotals:
    """
    彙總已確認發票與折讓單

    Args:
        invoices: 期別內所有已確認發票
        allowances: 期別內所有已確認折讓單

    Returns:
        AggregatedTotals（銷項、進項兩棵獨立的合計樹）

    Raises:
        UnsupportedInvoiceTypeError / UnsupportedTaxTypeError: 上游資料毀損
    """
    result = AggregatedTotals()
    output_invoices, input_invoices = split_by_direction(invoices)

    # 使用發票份數：銷項且非作廢
    result.invoice_count = sum(1 for inv in output_invoices if inv.tax_type != TaxType.VOID)

    result.consumer_sales = accumulate_output_invoices(result.output, output_invoices)
    accumulate_allowances(result.output, result.input, allowances or [])
    result.consumer_tax = apply_consumer_tax_adjustment(result.output, result.consumer_sales)
    compute_output_totals(result.output)

    accumulate_input_invoices(result.input, input_invoices)
    compute_input_totals(result.input)

    return result
