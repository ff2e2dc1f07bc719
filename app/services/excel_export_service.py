# excel_export_service.py
# 申報金額彙總 Excel 匯出

from io import BytesIO
from typing import List

from openpyxl.workbook import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.styles.numbers import FORMAT_NUMBER_COMMA_SEPARATED1
from openpyxl.utils import get_column_letter

from app.records import ClientInfo
from app.services.aggregation_service import AggregatedTotals
from app.utils.roc_period import RocPeriod

SHEET_TITLE = "401申報彙總"
DOC_TYPE = "營業人銷售額與稅額申報書彙總表"

OUTPUT_HEADER_COLOR = "CCFFCC"
INPUT_HEADER_COLOR = "CCE5FF"

THIN_BLACK = Side(style='thin', color='000000')


# ==================== 輔助函數 ====================

def add_title_rows(ws, company_name: str, tax_id: str, period_label: str, total_cols: int) -> int:
    """
    新增標題行（前3行 + 空行）

    Returns:
        下一行的行號
    """
    titles = [
        (f"{company_name}（{tax_id}）", 14),
        (DOC_TYPE, 12),
        (period_label, 12),
    ]
    for row, (text, size) in enumerate(titles, 1):
        ws.merge_cells(f'A{row}:{get_column_letter(total_cols)}{row}')
        cell = ws[f'A{row}']
        cell.value = text
        cell.font = Font(size=size, bold=True)
        cell.alignment = Alignment(horizontal='center', vertical='center')

    # 第4行：空行
    ws.row_dimensions[4].height = 15

    return 5


def add_section_header(ws, row: int, title: str, total_cols: int, bg_color: str) -> int:
    """
    新增區段標題（銷項/進項）

    Returns:
        下一行的行號
    """
    ws.merge_cells(f'A{row}:{get_column_letter(total_cols)}{row}')
    cell = ws[f'A{row}']
    cell.value = title
    cell.font = Font(size=12, bold=True)
    cell.alignment = Alignment(horizontal='center', vertical='center')
    cell.fill = PatternFill(start_color=bg_color, end_color=bg_color, fill_type='solid')
    cell.border = Border(left=THIN_BLACK, right=THIN_BLACK, top=THIN_BLACK, bottom=THIN_BLACK)
    return row + 1


def add_total_border(ws, row: int, start_col: int, end_col: int):
    """為合計列新增邊框（上單線，下雙線）"""
    for col in range(start_col, end_col + 1):
        ws.cell(row=row, column=col).border = Border(
            left=THIN_BLACK,
            right=THIN_BLACK,
            top=Side(style='thin'),
            bottom=Side(style='double')
        )


def set_column_widths(ws, widths: List[int]):
    """設定欄寬"""
    for i, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(i)].width = width


def format_number_cells(ws, row: int, start_col: int, end_col: int):
    """設定數字格式（會計格式，有千分位）"""
    for col in range(start_col, end_col + 1):
        ws.cell(row=row, column=col).number_format = FORMAT_NUMBER_COMMA_SEPARATED1


def add_black_borders(ws, start_row: int, end_row: int, start_col: int, end_col: int):
    """為指定範圍的儲存格加上黑框"""
    thin_border = Border(left=THIN_BLACK, right=THIN_BLACK, top=THIN_BLACK, bottom=THIN_BLACK)
    for row in range(start_row, end_row + 1):
        for col in range(start_col, end_col + 1):
            ws.cell(row=row, column=col).border = thin_border


def write_table(ws, start_row: int, headers: List[str], rows: List[list]) -> int:
    """
    寫入表頭與資料列，最後一列視為合計列

    Returns:
        下一行的行號
    """
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=start_row, column=col, value=header)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center', vertical='center')

    current_row = start_row + 1
    for values in rows:
        for col, value in enumerate(values, 1):
            ws.cell(row=current_row, column=col, value=value)
        format_number_cells(ws, current_row, 2, len(headers))
        current_row += 1

    add_black_borders(ws, start_row, current_row - 1, 1, len(headers))
    add_total_border(ws, current_row - 1, 1, len(headers))
    for col in range(1, len(headers) + 1):
        ws.cell(row=current_row - 1, column=col).font = Font(bold=True)

    return current_row


def write_detail_rows(ws, start_row: int, rows: List[list]) -> int:
    """寫入沒有合計列的明細列，回傳下一行的行號"""
    current_row = start_row
    for values in rows:
        for col, value in enumerate(values, 1):
            ws.cell(row=current_row, column=col, value=value)
        format_number_cells(ws, current_row, 2, len(values))
        current_row += 1
    add_black_borders(ws, start_row, current_row - 1, 1, len(rows[0]))
    return current_row


# ==================== 彙總表 ====================

def output_summary_rows(totals: AggregatedTotals) -> List[list]:
    output = totals.output
    return [
        ["三聯式發票", output.triplicate.sales, output.triplicate.tax],
        ["收銀機發票(三聯式)及電子發票", output.cash_register_and_electronic.sales,
         output.cash_register_and_electronic.tax],
        ["二聯式發票、收銀機發票(二聯式)", output.duplicate_cash_register.sales,
         output.duplicate_cash_register.tax],
        ["免用發票", output.exempt_from_issuance.sales, output.exempt_from_issuance.tax],
        ["退回及折讓", output.returns_and_allowances.sales, output.returns_and_allowances.tax],
        ["合計", output.total_sales, output.total_tax],
    ]


def output_detail_rows(totals: AggregatedTotals) -> List[list]:
    """不列入銷項合計的明細：零稅率、土地、其他固定資產"""
    output = totals.output
    return [
        ["零稅率銷售額", output.zero_tax.total],
        ["土地", output.land_sales],
        ["其他固定資產", output.fixed_asset_sales],
    ]


def input_summary_rows(totals: AggregatedTotals) -> List[list]:
    input_totals = totals.input
    labels = [
        ("統一發票扣抵聯", input_totals.triplicate),
        ("三聯式收銀機發票扣抵聯及電子發票", input_totals.cash_register_and_electronic),
        ("載有稅額之其他憑證", input_totals.other_certificates),
        ("退出及折讓", input_totals.returns_and_allowances),
    ]
    rows = [
        [label, b.purchases_and_expenses, b.purchases_and_expenses_tax, b.fixed_assets, b.fixed_assets_tax]
        for label, b in labels
    ]
    rows.append([
        "合計",
        input_totals.total_purchases_and_expenses,
        input_totals.total_purchases_and_expenses_tax,
        input_totals.total_fixed_assets,
        input_totals.total_fixed_assets_tax,
    ])
    return rows


def create_summary_excel(client: ClientInfo, period: RocPeriod, totals: AggregatedTotals) -> BytesIO:
    """
    產生申報金額彙總 Excel

    格式：
    - 前3行：公司名稱、申報書類型、期別
    - 銷項區段（淺綠色標題）：項目 | 銷售額 | 稅額，合計列之後為使用發票份數與零稅率、土地、其他固定資產明細
    - 空1行
    - 進項區段（淺藍色標題）：項目 | 進貨及費用 | 稅額 | 固定資產 | 稅額

    Returns:
        Excel 檔案的 BytesIO 物件
    """
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE

    column_widths = [36, 18, 16, 18, 16]
    set_column_widths(ws, column_widths)
    total_cols = len(column_widths)

    current_row = add_title_rows(ws, client.name, client.tax_id, period.format(), total_cols)

    # === 銷項 ===
    current_row = add_section_header(ws, current_row, "銷項", total_cols, OUTPUT_HEADER_COLOR)
    current_row = write_table(ws, current_row, ["項目", "銷售額", "稅額"], output_summary_rows(totals))
    ws.cell(row=current_row, column=1, value="使用發票份數")
    ws.cell(row=current_row, column=2, value=totals.invoice_count)
    current_row = write_detail_rows(ws, current_row + 1, output_detail_rows(totals))
    current_row += 1

    # === 進項 ===
    current_row = add_section_header(ws, current_row, "進項", total_cols, INPUT_HEADER_COLOR)
    write_table(ws, current_row, ["項目", "進貨及費用", "稅額", "固定資產", "稅額"], input_summary_rows(totals))

    output = BytesIO()
    wb.save(output)
    output.seek(0)

    return output
