# roc_period.py
# 民國年申報期別與日期轉換

import re
from datetime import date
from typing import List, Optional

ROC_YEAR_OFFSET = 1911
BLANK_YEAR_MONTH = '     '


class RocPeriod:
    """
    營業稅申報期別

    預設為雙月期（1-2、3-4 … 11-12 月），起始月為奇數月；
    按月申報者 month_span=1，起始月可為任一月份。
    """

    def __init__(self, roc_year: int, start_month: int, month_span: int = 2):
        if month_span not in (1, 2):
            raise ValueError("期別月數只能為 1 或 2")
        if month_span == 2 and (start_month < 1 or start_month > 11 or start_month % 2 == 0):
            raise ValueError("雙月期別的起始月份必須為 1 到 11 之間的奇數")
        if month_span == 1 and (start_month < 1 or start_month > 12):
            raise ValueError("月份必須介於 1 到 12")

        self.roc_year = roc_year
        self.start_month = start_month
        self.month_span = month_span

    @property
    def end_month(self) -> int:
        return self.start_month + self.month_span - 1

    @property
    def gregorian_year(self) -> int:
        return self.roc_year + ROC_YEAR_OFFSET

    @property
    def months(self) -> List[int]:
        return list(range(self.start_month, self.end_month + 1))

    def to_yyymm(self) -> str:
        """起始月的 YYYMM 字串，例如 11309"""
        return f"{self.roc_year:03d}{self.start_month:02d}"

    def to_end_yyymm(self) -> str:
        """結束月的 YYYMM 字串，例如 11310"""
        return f"{self.roc_year:03d}{self.end_month:02d}"

    def format(self) -> str:
        if self.month_span == 1:
            return f"民國 {self.roc_year} 年 {self.start_month:02d} 月"
        return f"民國 {self.roc_year} 年 {self.start_month:02d}-{self.end_month:02d} 月"

    def first_day(self) -> str:
        """期別第一天，YYYY/MM/DD"""
        return f"{self.gregorian_year}/{self.start_month:02d}/01"

    def contains_date(self, date_str: str) -> bool:
        """檢查 YYYY/MM/DD 日期是否落在本期別內"""
        normalized = normalize_date(date_str)
        if not normalized:
            return False
        year, month, _ = (int(part) for part in normalized.split('/'))
        return year == self.gregorian_year and month in self.months

    @classmethod
    def from_yyymm(cls, yyymm: str, month_span: int = 2) -> 'RocPeriod':
        """由 YYYMM 字串建立期別，雙月期會正規化到奇數起始月"""
        if not yyymm or not re.fullmatch(r'\d{5,}', yyymm.strip()):
            raise ValueError(f"無效的 YYYMM 格式: {yyymm}")
        yyymm = yyymm.strip()

        roc_year = int(yyymm[:-2])
        month = int(yyymm[-2:])
        if month < 1 or month > 12:
            raise ValueError(f"無效的月份: {yyymm}")

        if month_span == 2:
            month = (month - 1) // 2 * 2 + 1
        return cls(roc_year, month, month_span)

    @classmethod
    def from_date(cls, value: date, month_span: int = 2) -> 'RocPeriod':
        month = value.month
        if month_span == 2:
            month = (month - 1) // 2 * 2 + 1
        return cls(value.year - ROC_YEAR_OFFSET, month, month_span)

    @classmethod
    def periods_for_year(cls, roc_year: int) -> List['RocPeriod']:
        """某民國年度的 6 個雙月期別"""
        return [cls(roc_year, month) for month in (1, 3, 5, 7, 9, 11)]

    def __eq__(self, other):
        if not isinstance(other, RocPeriod):
            return NotImplemented
        return (self.roc_year, self.start_month, self.month_span) == \
            (other.roc_year, other.start_month, other.month_span)

    def __hash__(self):
        return hash((self.roc_year, self.start_month, self.month_span))

    def __str__(self):
        return self.to_yyymm()

    def __repr__(self):
        return f"RocPeriod({self.roc_year}, {self.start_month}, month_span={self.month_span})"


def normalize_date(value: Optional[str]) -> Optional[str]:
    """
    將日期正規化為 YYYY/MM/DD

    接受 YYYY/M/D 或 YYYY-MM-DD，不合法的日期回傳 None
    """
    if not value:
        return None
    parts = [part.strip() for part in value.strip().replace('-', '/').split('/')]
    if len(parts) != 3:
        return None

    y, m, d = parts
    if not re.fullmatch(r'\d{4}', y) or not re.fullmatch(r'\d{1,2}', m) or not re.fullmatch(r'\d{1,2}', d):
        return None

    try:
        parsed = date(int(y), int(m), int(d))
    except ValueError:
        return None
    return f"{parsed.year:04d}/{parsed.month:02d}/{parsed.day:02d}"


def to_roc_year_month(date_str: Optional[str]) -> str:
    """
    西元日期轉民國年月 YYYMM，例如 2024/09/01 → 11309

    無法解析時回傳 5 個空白
    """
    if not date_str:
        return BLANK_YEAR_MONTH
    separator = '/' if '/' in date_str else '-'
    parts = date_str.split(separator)
    if len(parts) < 2:
        return BLANK_YEAR_MONTH

    try:
        year = int(parts[0])
        month = int(parts[1])
    except ValueError:
        return BLANK_YEAR_MONTH

    return f"{year - ROC_YEAR_OFFSET:03d}{month:02d}"
