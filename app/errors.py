# app/errors.py
# 申報檔產生流程的例外類別


class ReportError(Exception):
    """申報檔產生失敗的基底例外"""


class ClientNotFoundError(ReportError):
    """客戶不存在，無法產生申報檔"""

    def __init__(self, client_id):
        super().__init__(f"客戶不存在: {client_id}")
        self.client_id = client_id


class ReportDataError(ReportError):
    """上游資料不一致（資料毀損，不可略過）"""


class UnsupportedTaxTypeError(ReportDataError):
    def __init__(self, tax_type, serial_code=None):
        super().__init__(f"不支援的課稅別: {tax_type} (發票: {serial_code or '-'})")
        self.tax_type = tax_type


class UnsupportedInvoiceTypeError(ReportDataError):
    def __init__(self, invoice_type, serial_code=None):
        super().__init__(f"不支援的發票類型: {invoice_type} (發票: {serial_code or '-'})")
        self.invoice_type = invoice_type


class PeriodMismatchError(ReportDataError):
    """發票日期不在申報期別內"""

    def __init__(self, serial_code, date, period_label):
        super().__init__(f"發票 {serial_code} 日期 {date} 不在期別 {period_label} 內")
        self.serial_code = serial_code
        self.date = date


class UnsupportedAllowanceTypeError(ReportDataError):
    def __init__(self, allowance_type, serial_code=None):
        super().__init__(f"不支援的折讓類型: {allowance_type} (原發票: {serial_code or '-'})")
        self.allowance_type = allowance_type


class UnsupportedDeductionCodeError(ReportDataError):
    def __init__(self, deduction_code, serial_code=None):
        super().__init__(f"不支援的扣抵代號: {deduction_code} (原發票: {serial_code or '-'})")
        self.deduction_code = deduction_code


class UnsupportedDirectionError(ReportDataError):
    """進銷項缺漏或無法辨識"""

    def __init__(self, in_or_out, serial_code=None):
        label = in_or_out if in_or_out else "未填寫"
        super().__init__(f"不支援的進銷項: {label} (發票: {serial_code or '-'})")
        self.in_or_out = in_or_out


class InvalidInvoiceRangeError(ReportDataError):
    """字軌區間起迄號不是 2 碼英文 + 8 碼數字、字軌不一致或起號大於迄號"""

    def __init__(self, start_number, end_number):
        super().__init__(f"無效的發票字軌區間: {start_number} - {end_number}")
        self.start_number = start_number
        self.end_number = end_number
