# report_service.py
# 401 電子申報檔產生：TXT（81 bytes/筆）與 TET_U（112 欄位）

import logging
from types import MappingProxyType
from typing import Dict, Iterable, List

from app.records import (
    TaxType, InOrOut, DeductionCode, InvoiceRecord, AllowanceRecord, LedgerRow,
    ClientInfo, TetUConfig,
)
from app.services.aggregation_service import (
    AggregatedTotals, VAT_RATE, aggregate_invoice_data,
)
from app.services.period_service import load_report_snapshot
from app.services.range_service import build_unused_rows
from app.utils.field_format import (
    LEGACY_ENCODING, format_x, format_c, format_9, format_s9, round_half_up,
)
from app.utils.format_codes import get_invoice_format_code, get_allowance_format_code
from app.utils.roc_period import RocPeriod, to_roc_year_month

logger = logging.getLogger(__name__)

TXT_ROW_LENGTH = 81
TET_U_FIELD_COUNT = 112

# 縣市別代號
COUNTY_CITY_CODES = MappingProxyType({
    '臺北市': 'A', '臺中市': 'B', '基隆市': 'C', '臺南市': 'D', '高雄市': 'E',
    '新北市': 'F', '宜蘭縣': 'G', '桃園市': 'H', '嘉義市': 'I', '新竹縣': 'J',
    '苗栗縣': 'K', '南投縣': 'M', '彰化縣': 'N', '新竹市': 'O', '雲林縣': 'P',
    '嘉義縣': 'Q', '屏東縣': 'T', '花蓮縣': 'U', '臺東縣': 'V', '金門縣': 'W',
    '澎湖縣': 'X', '連江縣': 'Z',
})
DEFAULT_COUNTY_CITY_CODE = 'A'

# TXT 第 62 位課稅別代號
TAX_TYPE_CODES = MappingProxyType({
    TaxType.TAXABLE: '1',
    TaxType.ZERO_RATE: '2',
    TaxType.EXEMPT: '3',
    TaxType.VOID: 'F',
    TaxType.AGGREGATE: 'D',
})


# ==================== TXT ====================

def invoice_to_row(invoice: InvoiceRecord) -> LedgerRow:
    return LedgerRow(
        format_code=get_invoice_format_code(invoice.in_or_out, invoice.invoice_type,
                                            invoice.invoice_serial_code),
        in_or_out=invoice.in_or_out,
        date=invoice.date,
        buyer_tax_id=invoice.buyer_tax_id,
        seller_tax_id=invoice.seller_tax_id,
        invoice_serial_code=invoice.invoice_serial_code,
        tax_type=invoice.tax_type,
        total_sales=invoice.total_sales,
        tax=invoice.tax,
    )


def allowance_to_rows(allowance: AllowanceRecord) -> List[LedgerRow]:
    """折讓單每個明細產生一筆，格式代號依折讓類型"""
    format_code = get_allowance_format_code(allowance.in_or_out, allowance.allowance_type)
    return [
        LedgerRow(
            format_code=format_code,
            in_or_out=allowance.in_or_out,
            date=allowance.date,
            buyer_tax_id=allowance.buyer_tax_id,
            seller_tax_id=allowance.seller_tax_id,
            invoice_serial_code=allowance.original_invoice_serial_code,
            tax_type=TaxType.TAXABLE,
            total_sales=item.amount,
            tax=item.tax_amount,
            deduction_code=allowance.deduction_code,
        )
        for item in allowance.effective_items()
    ]


def generate_txt_row(row: LedgerRow, row_num: int, tax_payer_id: str) -> str:
    """
    產生一筆 81 bytes 的 TXT 資料

    Args:
        row: 邏輯資料
        row_num: 流水號（整份檔案連續編號）
        tax_payer_id: 稅籍編號

    Returns:
        長度 81 的字串
    """
    is_void = row.tax_type == TaxType.VOID

    parts = [
        format_x(row.format_code, 2),                                   # 1-2 格式代號
        format_x(tax_payer_id, 9),                                      # 3-11 稅籍編號
        format_9(row_num, 7),                                           # 12-18 流水號
        to_roc_year_month(row.date),                                    # 19-23 資料所屬年月
        format_x('' if is_void else (row.buyer_tax_id or ''), 8),       # 24-31 買受人統編（彙加為迄號）
        format_x(row.seller_tax_id or '', 8),                           # 32-39 銷售人統編
        format_x(row.invoice_serial_code or '', 10),                    # 40-49 發票號碼
        format_9(0 if is_void else row.total_sales, 12),                # 50-61 銷售金額
        TAX_TYPE_CODES.get(row.tax_type, '1'),                          # 62 課稅別
        format_9(0 if is_void else row.tax, 10),                        # 63-72 營業稅額
    ]

    # 73 扣抵代號：銷項空白，進項預設 1（進貨及費用）
    if row.in_or_out == InOrOut.OUTPUT:
        parts.append(' ')
    else:
        parts.append((row.deduction_code or DeductionCode.PURCHASES_AND_EXPENSES).value)

    parts.append(' ' * 5)                                   # 74-78 空白
    parts.append(' ')                                       # 79 特種稅額稅率
    parts.append('A' if row.is_aggregate_block else ' ')   # 80 彙加註記
    parts.append(' ')                                       # 81 通關方式註記
    return ''.join(parts)


def build_input_rows(invoices: Iterable[InvoiceRecord],
                     allowances: Iterable[AllowanceRecord]) -> List[LedgerRow]:
    """進項：可扣抵的進項發票與進項折讓，依格式代號、發票號碼排序"""
    rows = [invoice_to_row(inv) for inv in invoices
            if inv.in_or_out == InOrOut.INPUT and inv.deductible]
    for allowance in allowances:
        if allowance.in_or_out == InOrOut.INPUT:
            rows.extend(allowance_to_rows(allowance))
    return sorted(rows, key=lambda r: r.sort_key)


def build_output_rows(invoices: Iterable[InvoiceRecord],
                      allowances: Iterable[AllowanceRecord]) -> Dict[str, List[LedgerRow]]:
    """銷項：所有銷項發票（含作廢）與銷項折讓，依格式代號分組"""
    grouped: Dict[str, List[LedgerRow]] = {}
    for invoice in invoices:
        if invoice.in_or_out == InOrOut.OUTPUT:
            row = invoice_to_row(invoice)
            grouped.setdefault(row.format_code, []).append(row)
    for allowance in allowances:
        if allowance.in_or_out == InOrOut.OUTPUT:
            for row in allowance_to_rows(allowance):
                grouped.setdefault(row.format_code, []).append(row)
    return grouped


def order_ledger_rows(
    input_rows: List[LedgerRow],
    output_rows_by_format: Dict[str, List[LedgerRow]],
    unused_rows_by_format: Dict[str, List[LedgerRow]]
) -> List[LedgerRow]:
    """
    排列 TXT 資料順序

    進項在前；銷項依格式代號數值遞增分組，組內先排實際發票（依號碼），
    再接該組的空白未使用資料
    """
    ordered = list(input_rows)

    format_codes = set(output_rows_by_format) | set(unused_rows_by_format)
    for format_code in sorted(format_codes, key=int):
        ordered.extend(sorted(output_rows_by_format.get(format_code, []), key=lambda r: r.sort_key))
        ordered.extend(unused_rows_by_format.get(format_code, []))

    return ordered


def build_txt_content(client: ClientInfo, period: RocPeriod,
                      invoices: Iterable[InvoiceRecord],
                      allowances: Iterable[AllowanceRecord],
                      ranges) -> str:
    invoices = list(invoices)
    allowances = list(allowances)

    input_rows = build_input_rows(invoices, allowances)
    output_rows = build_output_rows(invoices, allowances)
    unused_rows = build_unused_rows(client, period, invoices, ranges)

    ordered = order_ledger_rows(input_rows, output_rows, unused_rows)
    lines = [generate_txt_row(row, seq, client.tax_payer_id) for seq, row in enumerate(ordered, start=1)]
    return '\n'.join(lines)


def generate_txt_report(client_id: int, yyymm: str) -> str:
    """
    產生 TXT 申報檔內容

    Args:
        client_id: 客戶 ID
        yyymm: 期別 YYYMM

    Returns:
        以換行連接的 81 bytes 資料；無資料時為空字串

    Raises:
        ClientNotFoundError: 客戶不存在
        ReportDataError: 發票資料不一致
    """
    snapshot = load_report_snapshot(client_id, yyymm)
    content = build_txt_content(snapshot.client, snapshot.period,
                                snapshot.invoices, snapshot.allowances, snapshot.ranges)
    logger.info(f"產生 TXT 申報檔: 客戶 {snapshot.client.tax_id} 期別 {snapshot.period}, "
                f"共 {len(content.splitlines())} 筆")
    return content


# ==================== TET_U ====================

def get_declaration_code(config: TetUConfig) -> str:
    """申報代號：未指定時，總機構彙總申報為 5，其餘為 1"""
    if config.declaration_code:
        return config.declaration_code
    return '5' if config.consolidated_declaration_code == '1' else '1'


def get_county_city_code(name: str) -> str:
    return COUNTY_CITY_CODES.get(name, DEFAULT_COUNTY_CITY_CODE)


def compute_tax_cascade(totals: AggregatedTotals, config: TetUConfig) -> Dict[int, int]:
    """
    稅額計算欄位 82-95

    分別申報（總繳代號 2）時全部為 0
    """
    if config.consolidated_declaration_code == '2':
        return {n: 0 for n in range(82, 96)}

    output, input_totals = totals.output, totals.input
    f = {
        82: output.total_tax,
        83: 0,
        84: 0,
        85: config.mid_year_closure_tax_payable,
        87: input_totals.total_purchases_and_expenses_tax + input_totals.total_fixed_assets_tax,
        88: config.previous_period_carry_forward_tax,
        89: config.mid_year_closure_tax_refundable,
    }
    f[86] = f[82] + f[83] + f[84] + f[85]
    f[90] = f[87] + f[88] + f[89]
    f[91] = max(0, f[86] - f[90])
    f[92] = max(0, f[90] - f[86])
    f[93] = round_half_up(output.zero_tax.total * VAT_RATE) + input_totals.total_fixed_assets_tax
    f[94] = min(f[92], f[93])
    f[95] = f[92] - f[94]
    return f


def build_tet_u_fields(client: ClientInfo, period: RocPeriod, totals: AggregatedTotals,
                       config: TetUConfig, legacy_encoding: str = LEGACY_ENCODING) -> List[str]:
    """
    組成 TET_U 的 112 個欄位

    403/404 專用欄位以對應寬度的 0 填入
    """
    output, input_totals = totals.output, totals.input
    fields = []

    # 1-8 檔案基本資料
    fields.append(format_x('1', 1))
    fields.append(format_x(config.file_number or ' ' * 8, 8))
    fields.append(format_x(client.tax_id, 8))
    fields.append(format_x(period.to_end_yyymm(), 5))
    fields.append(format_x(get_declaration_code(config), 1))
    fields.append(format_x(config.tax_payer_id, 9))
    fields.append(format_x(config.consolidated_declaration_code, 1))
    fields.append(format_9(totals.invoice_count, 10))

    # 9-20 銷項金額及稅額
    output_categories = (output.triplicate, output.cash_register_and_electronic,
                         output.duplicate_cash_register, output.exempt_from_issuance,
                         output.returns_and_allowances)
    fields.extend(format_s9(c.sales, 12) for c in output_categories)
    fields.append(format_s9(output.total_sales, 12))
    fields.extend(format_s9(c.tax, 10) for c in output_categories)
    fields.append(format_s9(output.total_tax, 10))

    # 21 免開立統一發票銷售額
    fields.append(format_s9(output.sales_without_invoice, 12))

    # 22-25 零稅率銷售額
    zero_tax = output.zero_tax
    fields.extend(format_s9(v, 12) for v in (zero_tax.with_documents, zero_tax.without_documents,
                                             zero_tax.returns_and_allowances, zero_tax.total))

    # 26-31 免稅銷售額（403）
    fields.extend(format_s9(0, 12) for _ in range(6))

    # 32-46 特種稅額（403/404）
    fields.extend(format_s9(0, width) for width in (12, 10, 12, 10, 12, 10, 12, 10, 12, 10, 12, 12, 10, 12, 10))

    # 47-49 銷售額總計、土地、其他固定資產
    fields.append(format_s9(output.total_sales + zero_tax.total, 12))
    fields.append(format_s9(output.land_sales, 12))
    fields.append(format_s9(output.fixed_asset_sales, 12))

    # 50-69 得扣抵進項金額及稅額
    input_buckets = (input_totals.triplicate, input_totals.cash_register_and_electronic,
                     input_totals.other_certificates, input_totals.returns_and_allowances)
    for bucket in input_buckets:
        fields.append(format_s9(bucket.purchases_and_expenses, 12))
        fields.append(format_s9(bucket.fixed_assets, 12))
    fields.append(format_s9(input_totals.total_purchases_and_expenses, 12))
    fields.append(format_s9(input_totals.total_fixed_assets, 12))
    for bucket in input_buckets:
        fields.append(format_s9(bucket.purchases_and_expenses_tax, 10))
        fields.append(format_s9(bucket.fixed_assets_tax, 10))
    fields.append(format_s9(input_totals.total_purchases_and_expenses_tax, 10))
    fields.append(format_s9(input_totals.total_fixed_assets_tax, 10))

    # 70-71 進項總金額
    fields.append(format_s9(input_totals.total_purchases_and_expenses_all, 12))
    fields.append(format_s9(input_totals.total_fixed_assets_all, 12))

    # 72-81 不得扣抵比例、進口及國外勞務（403）
    fields.append(format_9(0, 3))
    fields.extend(format_s9(0, width) for width in (10, 12, 12, 12, 12, 10, 10, 10, 10))

    # 82-95 稅額計算；401 沒有小計欄位，86 固定為 0
    cascade = compute_tax_cascade(totals, config)
    for n in range(82, 96):
        value = 0 if n == 86 and fields[0] == '1' else cascade[n]
        fields.append(format_s9(value, 10))

    # 96-104 申報人及代理人
    fields.append(format_x(config.declaration_type, 1))
    fields.append(format_x(get_county_city_code(config.county_city), 1))
    fields.append(format_x(config.declaration_method, 1))
    fields.append(format_x(config.declarer_id, 10))
    fields.append(config.declarer_name)
    fields.append(format_x(config.declarer_phone_area_code, 4))
    fields.append(format_x(config.declarer_phone, 11))
    fields.append(format_x(config.declarer_phone_extension, 5))
    fields.append(format_c(config.agent_registration_number, 50, legacy_encoding))

    # 105-112 國外勞務、銀行保險業（404）
    fields.extend(format_s9(0, width) for width in (12, 12, 12, 10, 10, 10, 12, 10))

    return fields


def generate_tet_u_report(client_id: int, yyymm: str, config: TetUConfig,
                          legacy_encoding: str = LEGACY_ENCODING) -> str:
    """
    產生 TET_U 申報檔內容

    Args:
        client_id: 客戶 ID
        yyymm: 期別 YYYMM
        config: 申報人資料
        legacy_encoding: C 型欄位長度計算用編碼

    Returns:
        以 | 連接的 112 個欄位

    Raises:
        ClientNotFoundError: 客戶不存在
        ReportDataError: 發票資料不一致
    """
    snapshot = load_report_snapshot(client_id, yyymm)
    totals = aggregate_invoice_data(snapshot.invoices, snapshot.allowances)
    fields = build_tet_u_fields(snapshot.client, snapshot.period, totals, config, legacy_encoding)
    logger.info(f"產生 TET_U 申報檔: 客戶 {snapshot.client.tax_id} 期別 {snapshot.period}")
    return '|'.join(fields)


def generate_report_summary(client_id: int, yyymm: str):
    """
    申報金額彙總（供畫面與 Excel 匯出）

    Returns:
        (snapshot, AggregatedTotals)
    """
    snapshot = load_report_snapshot(client_id, yyymm)
    return snapshot, aggregate_invoice_data(snapshot.invoices, snapshot.allowances)
