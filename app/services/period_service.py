# period_service.py
# 申報期別解析：讀取客戶、期別、已確認發票/折讓單與發票字軌

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from app.errors import ClientNotFoundError, PeriodMismatchError
from app.models import db, Client, TaxFilingPeriod, Invoice, Allowance, InvoiceRange
from app.records import ClientInfo, InvoiceRecord, AllowanceRecord, InvoiceRangeRecord
from app.services.mapping_service import (
    map_invoice_json_to_record,
    map_allowance_json_to_record,
    map_invoice_range,
)
from app.utils.roc_period import RocPeriod

logger = logging.getLogger(__name__)

CONFIRMED_STATUS = "confirmed"


@dataclass(frozen=True)
class ReportSnapshot:
    """單一客戶、單一期別的唯讀資料快照"""
    client: ClientInfo
    period: RocPeriod
    period_id: Optional[int]
    invoices: Tuple[InvoiceRecord, ...]
    allowances: Tuple[AllowanceRecord, ...]
    ranges: Tuple[InvoiceRangeRecord, ...]

    @property
    def has_period(self) -> bool:
        return self.period_id is not None


def get_client(client_id: int) -> ClientInfo:
    client = db.session.get(Client, client_id)
    if not client:
        raise ClientNotFoundError(client_id)
    return ClientInfo(
        id=client.id,
        name=client.name,
        tax_id=client.tax_id,
        tax_payer_id=client.tax_payer_id,
    )


def get_tax_period(client_id: int, year_month: str) -> Optional[TaxFilingPeriod]:
    """取得客戶的申報期別，不存在時回傳 None"""
    return TaxFilingPeriod.query.filter_by(client_id=client_id, year_month=year_month).first()


def resolve_period(client_id: int, yyymm: str) -> Tuple[RocPeriod, Optional[TaxFilingPeriod]]:
    """
    解析期別字串

    按月申報的期別以原月份查詢；其餘正規化為雙月期起始月
    """
    monthly = RocPeriod.from_yyymm(yyymm, month_span=1)
    tax_period = get_tax_period(client_id, monthly.to_yyymm())
    if tax_period is not None and tax_period.month_span == 1:
        return monthly, tax_period

    period = RocPeriod.from_yyymm(yyymm)
    return period, get_tax_period(client_id, period.to_yyymm())


def get_confirmed_invoices(client_id: int, period_id: int) -> List[InvoiceRecord]:
    rows = Invoice.query.filter_by(
        client_id=client_id,
        tax_filing_period_id=period_id,
        status=CONFIRMED_STATUS,
    ).order_by(Invoice.id).all()

    records = []
    for row in rows:
        if not row.extracted_data:
            continue
        data = dict(row.extracted_data)
        # 辨識結果缺少進銷項時以資料表欄位為準
        if not data.get('inOrOut'):
            data['inOrOut'] = row.in_or_out
        records.append(map_invoice_json_to_record(data))
    return records


def get_confirmed_allowances(client_id: int, period_id: int) -> List[AllowanceRecord]:
    rows = Allowance.query.filter_by(
        client_id=client_id,
        tax_filing_period_id=period_id,
        status=CONFIRMED_STATUS,
    ).order_by(Allowance.id).all()
    return [
        map_allowance_json_to_record(row.extracted_data, row.in_or_out, row.original_invoice_serial_code)
        for row in rows if row.extracted_data
    ]


def get_invoice_ranges(client_id: int, year_month: str) -> List[InvoiceRangeRecord]:
    rows = InvoiceRange.query.filter_by(
        client_id=client_id,
        year_month=year_month,
    ).order_by(InvoiceRange.start_number).all()
    return [map_invoice_range(row.invoice_type, row.start_number, row.end_number) for row in rows]


def ensure_invoices_in_period(invoices: List[InvoiceRecord], period: RocPeriod):
    """
    檢查每張發票日期是否落在期別月份內

    期別關聯由伺服器計算，日期則來自辨識文字，兩者不一致表示期別關聯不可信

    Raises:
        PeriodMismatchError: 發票日期不在期別內
    """
    for invoice in invoices:
        if invoice.date and not period.contains_date(invoice.date):
            raise PeriodMismatchError(invoice.invoice_serial_code, invoice.date, period.format())


def load_report_snapshot(client_id: int, yyymm: str) -> ReportSnapshot:
    """
    讀取產生申報檔所需的全部資料

    Args:
        client_id: 客戶 ID
        yyymm: 期別 YYYMM（雙月期可傳入任一月份）

    Returns:
        ReportSnapshot；期別不存在時發票與折讓單為空

    Raises:
        ClientNotFoundError: 客戶不存在
        PeriodMismatchError: 發票日期與期別不符
    """
    client = get_client(client_id)
    period, tax_period = resolve_period(client_id, yyymm)

    if tax_period is None:
        logger.info(f"客戶 {client.tax_id} 尚未建立期別 {period.to_yyymm()}，以無資料處理")
        invoices, allowances = [], []
    else:
        invoices = get_confirmed_invoices(client_id, tax_period.id)
        allowances = get_confirmed_allowances(client_id, tax_period.id)
        ensure_invoices_in_period(invoices, period)

    ranges = get_invoice_ranges(client_id, period.to_yyymm())

    return ReportSnapshot(
        client=client,
        period=period,
        period_id=tax_period.id if tax_period is not None else None,
        invoices=tuple(invoices),
        allowances=tuple(allowances),
        ranges=tuple(ranges),
    )
