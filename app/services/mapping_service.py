# mapping_service.py
# 處理資料庫 extracted_data（中文列舉值）↔ 內部列舉型別的雙向映射

from collections import Counter
from typing import Dict, Any, Iterable, Optional

from app.errors import (
    UnsupportedTaxTypeError, UnsupportedInvoiceTypeError, UnsupportedAllowanceTypeError,
    UnsupportedDeductionCodeError, UnsupportedDirectionError, InvalidInvoiceRangeError,
)
from app.records import (
    TaxType, InvoiceType, InOrOut, AllowanceType, DeductionCode,
    InvoiceRecord, AllowanceRecord, AllowanceItem, InvoiceRangeRecord, TetUConfig,
)
from app.services.range_service import is_valid_serial
from app.utils.field_format import round_half_up
from app.utils.roc_period import normalize_date


TAX_TYPE_BY_LABEL = {
    '應稅': TaxType.TAXABLE,
    '零稅率': TaxType.ZERO_RATE,
    '免稅': TaxType.EXEMPT,
    '作廢': TaxType.VOID,
    '彙加': TaxType.AGGREGATE,
}

INVOICE_TYPE_BY_LABEL = {
    '手開二聯式': InvoiceType.MANUAL_DUPLICATE,
    '手開三聯式': InvoiceType.MANUAL_TRIPLICATE,
    '電子發票': InvoiceType.ELECTRONIC,
    '二聯式收銀機': InvoiceType.CASH_REGISTER_DUPLICATE,
    '三聯式收銀機': InvoiceType.CASH_REGISTER_TRIPLICATE,
}

IN_OR_OUT_BY_LABEL = {
    '進項': InOrOut.INPUT,
    '銷項': InOrOut.OUTPUT,
    'in': InOrOut.INPUT,
    'out': InOrOut.OUTPUT,
}

ALLOWANCE_TYPE_BY_LABEL = {
    '三聯式折讓': AllowanceType.TRIPLICATE,
    '電子發票折讓': AllowanceType.ELECTRONIC,
    '二聯式折讓': AllowanceType.DUPLICATE,
}

TAX_TYPE_LABELS = {v: k for k, v in TAX_TYPE_BY_LABEL.items()}
INVOICE_TYPE_LABELS = {v: k for k, v in INVOICE_TYPE_BY_LABEL.items()}

# extracted_data 中已建模的欄位，其餘放入 extra
INVOICE_KEYS = {
    'invoiceSerialCode', 'date', 'sellerTaxId', 'buyerTaxId', 'totalSales', 'tax',
    'totalAmount', 'taxType', 'invoiceType', 'inOrOut', 'deductible', 'summary',
}
ALLOWANCE_KEYS = {
    'allowanceType', 'originalInvoiceSerialCode', 'amount', 'taxAmount', 'date',
    'sellerTaxId', 'buyerTaxId', 'taxType', 'deductionCode', 'summary', 'items',
}


def _to_amount(value) -> int:
    if value is None or value == '':
        return 0
    return round_half_up(value)


def _blank_to_none(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_tax_type(label: Optional[str], serial_code: Optional[str] = None) -> Optional[TaxType]:
    if label is None or label == '':
        return None
    try:
        return TAX_TYPE_BY_LABEL[label]
    except KeyError:
        raise UnsupportedTaxTypeError(label, serial_code)


def parse_invoice_type(label: Optional[str], serial_code: Optional[str] = None) -> Optional[InvoiceType]:
    if label is None or label == '':
        return None
    try:
        return INVOICE_TYPE_BY_LABEL[label]
    except KeyError:
        raise UnsupportedInvoiceTypeError(label, serial_code)


def parse_in_or_out(label: Optional[str], serial_code: Optional[str] = None) -> Optional[InOrOut]:
    if label is None or label == '':
        return None
    try:
        return IN_OR_OUT_BY_LABEL[label]
    except KeyError:
        raise UnsupportedDirectionError(label, serial_code)


def map_invoice_json_to_record(data: Dict[str, Any]) -> InvoiceRecord:
    """
    將發票 extracted_data（中文列舉值）轉為 InvoiceRecord

    Args:
        data: 發票 extracted_data JSON

    Returns:
        InvoiceRecord，未建模的欄位放在 extra
    """
    serial = _blank_to_none(data.get('invoiceSerialCode'))
    return InvoiceRecord(
        invoice_serial_code=serial,
        date=normalize_date(data.get('date')) or _blank_to_none(data.get('date')),
        seller_tax_id=_blank_to_none(data.get('sellerTaxId')),
        buyer_tax_id=_blank_to_none(data.get('buyerTaxId')),
        total_sales=_to_amount(data.get('totalSales')),
        tax=_to_amount(data.get('tax')),
        total_amount=_to_amount(data.get('totalAmount')),
        tax_type=parse_tax_type(data.get('taxType'), serial),
        invoice_type=parse_invoice_type(data.get('invoiceType'), serial),
        in_or_out=parse_in_or_out(data.get('inOrOut'), serial),
        deductible=data.get('deductible') is True,
        summary=data.get('summary') or '',
        extra={k: v for k, v in data.items() if k not in INVOICE_KEYS},
    )


def map_allowance_json_to_record(
    data: Dict[str, Any],
    in_or_out: str,
    original_invoice_serial_code: Optional[str] = None
) -> AllowanceRecord:
    """
    將折讓單 extracted_data 轉為 AllowanceRecord

    進銷項以資料表欄位 in_or_out 為準；原發票號碼優先使用資料表欄位
    """
    serial = _blank_to_none(original_invoice_serial_code) or _blank_to_none(data.get('originalInvoiceSerialCode'))

    allowance_type_label = data.get('allowanceType')
    allowance_type = None
    if allowance_type_label:
        try:
            allowance_type = ALLOWANCE_TYPE_BY_LABEL[allowance_type_label]
        except KeyError:
            raise UnsupportedAllowanceTypeError(allowance_type_label, serial)

    deduction_code = None
    if data.get('deductionCode'):
        try:
            deduction_code = DeductionCode(str(data['deductionCode']))
        except ValueError:
            raise UnsupportedDeductionCodeError(data['deductionCode'], serial)

    items = tuple(
        AllowanceItem(
            amount=_to_amount(item['amount'] if item.get('amount') is not None else data.get('amount')),
            tax_amount=_to_amount(item['taxAmount'] if item.get('taxAmount') is not None else data.get('taxAmount')),
            description=item.get('description') or '',
        )
        for item in (data.get('items') or [])
    )

    return AllowanceRecord(
        in_or_out=parse_in_or_out(in_or_out, serial),
        original_invoice_serial_code=serial,
        allowance_type=allowance_type,
        amount=_to_amount(data.get('amount')),
        tax_amount=_to_amount(data.get('taxAmount')),
        date=normalize_date(data.get('date')) or _blank_to_none(data.get('date')),
        seller_tax_id=_blank_to_none(data.get('sellerTaxId')),
        buyer_tax_id=_blank_to_none(data.get('buyerTaxId')),
        tax_type=parse_tax_type(data.get('taxType'), serial),
        deduction_code=deduction_code,
        summary=data.get('summary') or '',
        items=items,
        extra={k: v for k, v in data.items() if k not in ALLOWANCE_KEYS},
    )


def count_invoice_labels(invoices: Iterable[InvoiceRecord]) -> Dict[str, Dict[str, int]]:
    """依中文課稅別、發票類型統計發票張數，未填寫者以「未填寫」計"""
    tax_types, invoice_types = Counter(), Counter()
    for invoice in invoices:
        tax_types[TAX_TYPE_LABELS.get(invoice.tax_type, '未填寫')] += 1
        invoice_types[INVOICE_TYPE_LABELS.get(invoice.invoice_type, '未填寫')] += 1
    return {'tax_type': dict(tax_types), 'invoice_type': dict(invoice_types)}


def map_invoice_range(invoice_type: str, start_number: str, end_number: str) -> InvoiceRangeRecord:
    """
    將發票字軌列轉為 InvoiceRangeRecord

    Raises:
        InvalidInvoiceRangeError: 起迄號格式錯誤、字軌不同或起號大於迄號
    """
    start = (start_number or '').strip().upper()
    end = (end_number or '').strip().upper()
    if not (is_valid_serial(start) and is_valid_serial(end)) or start[:2] != end[:2] or start > end:
        raise InvalidInvoiceRangeError(start_number, end_number)
    return InvoiceRangeRecord(
        invoice_type=parse_invoice_type(invoice_type, start),
        start_number=start,
        end_number=end,
    )


def map_tet_u_config(data: Dict[str, Any]) -> TetUConfig:
    """
    將前端送來的 TET_U 設定（camelCase）轉為 TetUConfig 並檢查格式

    Raises:
        ValueError: 欄位缺漏或格式不符
    """
    if not isinstance(data, dict):
        raise ValueError("TET_U 設定必須為物件")

    tax_payer_id = data.get('taxPayerId') or ''
    if len(tax_payer_id) != 9:
        raise ValueError("稅籍編號為 9 碼")

    consolidated = str(data.get('consolidatedDeclarationCode', '0'))
    if consolidated not in ('0', '1', '2'):
        raise ValueError(f"無效的總繳代號: {consolidated}")

    declaration_type = str(data.get('declarationType', '1'))
    if declaration_type not in ('1', '2'):
        raise ValueError(f"無效的申報種類: {declaration_type}")

    declaration_method = str(data.get('declarationMethod', '1'))
    if declaration_method not in ('1', '2'):
        raise ValueError(f"無效的申報方式: {declaration_method}")

    return TetUConfig(
        tax_payer_id=tax_payer_id,
        consolidated_declaration_code=consolidated,
        declaration_code=str(data.get('declarationCode') or ''),
        file_number=data.get('fileNumber') or '',
        mid_year_closure_tax_payable=_to_amount(data.get('midYearClosureTaxPayable')),
        previous_period_carry_forward_tax=_to_amount(data.get('previousPeriodCarryForwardTax')),
        mid_year_closure_tax_refundable=_to_amount(data.get('midYearClosureTaxRefundable')),
        declaration_type=declaration_type,
        county_city=data.get('countyCity') or '',
        declaration_method=declaration_method,
        declarer_id=data.get('declarerId') or '',
        declarer_name=data.get('declarerName') or '',
        declarer_phone_area_code=data.get('declarerPhoneAreaCode') or '',
        declarer_phone=data.get('declarerPhone') or '',
        declarer_phone_extension=data.get('declarerPhoneExtension') or '',
        agent_registration_number=data.get('agentRegistrationNumber') or '',
    )
