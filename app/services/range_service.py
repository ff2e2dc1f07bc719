# range_service.py
# 發票字軌區間比對：找出未使用的發票號碼並產生彙加（空白未使用）資料

import logging
import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple

from app.records import (
    TaxType, InvoiceType, InOrOut, InvoiceRecord, InvoiceRangeRecord, LedgerRow, ClientInfo,
)
from app.utils.format_codes import get_invoice_format_code
from app.utils.roc_period import RocPeriod

logger = logging.getLogger(__name__)

SERIAL_PATTERN = re.compile(r'^[A-Z]{2}\d{8}$')

# 電子發票未登錄字軌時，以 50 號為一本推算
ELECTRONIC_BOOKLET_SIZE = 50


def is_valid_serial(serial: Optional[str]) -> bool:
    """發票號碼須為 2 碼英文字軌 + 8 碼數字"""
    return bool(serial) and len(serial) == 10 and bool(SERIAL_PATTERN.match(serial))


def split_serial(serial: str) -> Tuple[str, int]:
    """拆成字軌與號碼，例如 RT33662450 → ('RT', 33662450)"""
    return serial[:2], int(serial[2:])


def join_serial(prefix: str, number: int) -> str:
    return f"{prefix}{number:08d}"


def build_unused_row(format_code: str, unused_start: str, unused_end: str,
                     date: str, seller_tax_id: str) -> LedgerRow:
    """
    建立一筆彙加資料

    只剩一個號碼時為逐筆登錄，不帶迄號；
    多個號碼為彙總登錄，迄號（去除字軌）放在買受人統編欄位
    """
    only_one_unused = unused_start == unused_end
    return LedgerRow(
        format_code=format_code,
        in_or_out=InOrOut.OUTPUT,
        date=date,
        buyer_tax_id=None if only_one_unused else unused_end[2:],
        seller_tax_id=seller_tax_id,
        invoice_serial_code=unused_start,
        tax_type=TaxType.AGGREGATE,
        total_sales=0,
        tax=0,
    )


def find_unused_in_range(invoice_range: InvoiceRangeRecord,
                         invoices: Iterable[InvoiceRecord]) -> Optional[Tuple[str, str]]:
    """
    計算單一字軌區間的未使用號碼

    下一個未使用號碼為區間內已開立最大號碼 + 1，沒有已開立發票則為起號

    Returns:
        (未使用起號, 迄號)，區間已用完時回傳 None
    """
    prefix, range_start = split_serial(invoice_range.start_number)
    _, range_end = split_serial(invoice_range.end_number)

    used_numbers = []
    for invoice in invoices:
        serial = invoice.invoice_serial_code
        if not is_valid_serial(serial):
            continue
        serial_prefix, number = split_serial(serial)
        if serial_prefix == prefix and range_start <= number <= range_end:
            used_numbers.append(number)

    next_unused = max(used_numbers) + 1 if used_numbers else range_start
    if next_unused > range_end:
        return None
    return join_serial(prefix, next_unused), invoice_range.end_number


def infer_electronic_unused(invoices: Iterable[InvoiceRecord]) -> Optional[Tuple[str, str]]:
    """
    電子發票未登錄字軌時，由最大號碼推算所屬的 50 號區塊，回傳該區塊剩餘號碼

    Returns:
        (未使用起號, 區塊迄號)，沒有發票或區塊已用完時回傳 None
    """
    serials = sorted(inv.invoice_serial_code for inv in invoices if is_valid_serial(inv.invoice_serial_code))
    if not serials:
        return None

    prefix, last_number = split_serial(serials[-1])
    within_hundred = last_number % 100
    block_start = last_number - within_hundred + within_hundred // ELECTRONIC_BOOKLET_SIZE * ELECTRONIC_BOOKLET_SIZE
    block_end = block_start + ELECTRONIC_BOOKLET_SIZE - 1

    next_unused = last_number + 1
    if next_unused > block_end:
        return None
    return join_serial(prefix, next_unused), join_serial(prefix, block_end)


def group_output_invoices_by_type(invoices: Iterable[InvoiceRecord]) -> Dict[InvoiceType, List[InvoiceRecord]]:
    grouped = OrderedDict()
    for invoice in invoices:
        if invoice.in_or_out != InOrOut.OUTPUT or invoice.invoice_type is None:
            continue
        grouped.setdefault(invoice.invoice_type, []).append(invoice)
    return grouped


def build_unused_rows(
    client: ClientInfo,
    period: RocPeriod,
    invoices: Iterable[InvoiceRecord],
    ranges: Iterable[InvoiceRangeRecord]
) -> Dict[str, List[LedgerRow]]:
    """
    依發票類型比對字軌區間與已開立號碼，產生彙加資料

    Args:
        client: 客戶（賣方統編）
        period: 申報期別（彙加資料日期為期別第一天）
        invoices: 期別內所有已確認發票（只使用銷項）
        ranges: 期別內登錄的字軌區間

    Returns:
        以格式代號分組的彙加資料
    """
    ranges = list(ranges)
    grouped = group_output_invoices_by_type(invoices)

    all_types = list(grouped.keys())
    for invoice_range in ranges:
        if invoice_range.invoice_type not in all_types:
            all_types.append(invoice_range.invoice_type)

    unused_date = period.first_day()
    rows_by_format: Dict[str, List[LedgerRow]] = OrderedDict()

    for invoice_type in all_types:
        type_invoices = grouped.get(invoice_type, [])
        format_code = get_invoice_format_code(InOrOut.OUTPUT, invoice_type)
        relevant_ranges = [r for r in ranges if r.invoice_type == invoice_type]

        unused_blocks = []
        if not relevant_ranges and invoice_type == InvoiceType.ELECTRONIC:
            inferred = infer_electronic_unused(type_invoices)
            if inferred:
                unused_blocks.append(inferred)

        for invoice_range in relevant_ranges:
            unused = find_unused_in_range(invoice_range, type_invoices)
            if unused:
                unused_blocks.append(unused)

        for unused_start, unused_end in unused_blocks:
            logger.info(f"產生空白未使用發票資料: {unused_start} - {unused_end} (格式 {format_code})")
            rows_by_format.setdefault(format_code, []).append(
                build_unused_row(format_code, unused_start, unused_end, unused_date, client.tax_id)
            )

    return rows_by_format
