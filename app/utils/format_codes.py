# format_codes.py
# TXT 申報檔格式代號

from typing import Optional

from app.errors import UnsupportedInvoiceTypeError
from app.records import InOrOut, InvoiceType, AllowanceType

# 發票格式代號：進項 21/22/25，銷項 31/32/35
INVOICE_FORMAT_CODES = {
    InOrOut.INPUT: {'triplicate': '21', 'duplicate': '22', 'cash_register_and_electronic': '25'},
    InOrOut.OUTPUT: {'triplicate': '31', 'duplicate': '32', 'cash_register_and_electronic': '35'},
}

# 折讓格式代號：進項 23/24，銷項 33/34
ALLOWANCE_FORMAT_CODES = {
    InOrOut.INPUT: {'triplicate_family': '23', 'duplicate': '24'},
    InOrOut.OUTPUT: {'triplicate_family': '33', 'duplicate': '34'},
}


def get_invoice_format_code(in_or_out: InOrOut, invoice_type: Optional[InvoiceType],
                            serial_code: Optional[str] = None) -> str:
    """依進銷項與發票類型取得格式代號"""
    codes = INVOICE_FORMAT_CODES[in_or_out]
    if invoice_type == InvoiceType.MANUAL_TRIPLICATE:
        return codes['triplicate']
    if invoice_type is not None and invoice_type.is_cash_register_or_electronic:
        return codes['cash_register_and_electronic']
    if invoice_type is not None and invoice_type.is_duplicate:
        return codes['duplicate']
    raise UnsupportedInvoiceTypeError(invoice_type, serial_code)


def get_allowance_format_code(in_or_out: InOrOut, allowance_type: Optional[AllowanceType]) -> str:
    """依進銷項與折讓類型取得格式代號，未指定類型時視為電子發票折讓"""
    allowance_type = allowance_type or AllowanceType.ELECTRONIC
    codes = ALLOWANCE_FORMAT_CODES[in_or_out]
    if allowance_type in (AllowanceType.TRIPLICATE, AllowanceType.ELECTRONIC):
        return codes['triplicate_family']
    return codes['duplicate']
