# records.py
# 申報檔產生流程使用的發票、折讓、字軌與 TET_U 設定資料結構

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple


class TaxType(Enum):
    """課稅別"""
    TAXABLE = 'taxable'            # 應稅
    ZERO_RATE = 'zero_rate'        # 零稅率
    EXEMPT = 'exempt'              # 免稅
    VOID = 'void'                  # 作廢
    AGGREGATE = 'aggregate'        # 彙加（空白未使用發票）


class InvoiceType(Enum):
    """發票類型"""
    MANUAL_DUPLICATE = 'manual_duplicate'              # 手開二聯式
    MANUAL_TRIPLICATE = 'manual_triplicate'            # 手開三聯式
    ELECTRONIC = 'electronic'                          # 電子發票
    CASH_REGISTER_DUPLICATE = 'cash_register_duplicate'    # 二聯式收銀機
    CASH_REGISTER_TRIPLICATE = 'cash_register_triplicate'  # 三聯式收銀機

    @property
    def is_duplicate(self) -> bool:
        return self in (InvoiceType.MANUAL_DUPLICATE, InvoiceType.CASH_REGISTER_DUPLICATE)

    @property
    def is_cash_register_or_electronic(self) -> bool:
        return self in (InvoiceType.ELECTRONIC, InvoiceType.CASH_REGISTER_TRIPLICATE)


class InOrOut(Enum):
    INPUT = 'in'     # 進項
    OUTPUT = 'out'   # 銷項


class AllowanceType(Enum):
    TRIPLICATE = 'triplicate'      # 三聯式折讓
    ELECTRONIC = 'electronic'      # 電子發票折讓
    DUPLICATE = 'duplicate'        # 二聯式折讓


class DeductionCode(Enum):
    PURCHASES_AND_EXPENSES = '1'   # 進貨及費用
    FIXED_ASSETS = '2'             # 固定資產


FIXED_ASSET_KEYWORDS = ('固定資產', '設備')
LAND_KEYWORD = '土地'


def _frozen_extra(extra: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(extra or {}))


@dataclass(frozen=True)
class InvoiceRecord:
    """已確認發票的正規化欄位；extra 保存彙總不使用的其他欄位（如 confidence）"""
    invoice_serial_code: Optional[str] = None
    date: Optional[str] = None
    seller_tax_id: Optional[str] = None
    buyer_tax_id: Optional[str] = None
    total_sales: int = 0
    tax: int = 0
    total_amount: int = 0
    tax_type: Optional[TaxType] = None
    invoice_type: Optional[InvoiceType] = None
    in_or_out: Optional[InOrOut] = None
    deductible: bool = False
    summary: str = ''
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'extra', _frozen_extra(self.extra))

    @property
    def is_fixed_asset(self) -> bool:
        return any(keyword in (self.summary or '') for keyword in FIXED_ASSET_KEYWORDS)

    @property
    def is_land(self) -> bool:
        return LAND_KEYWORD in (self.summary or '')


@dataclass(frozen=True)
class AllowanceItem:
    amount: int = 0
    tax_amount: int = 0
    description: str = ''


@dataclass(frozen=True)
class AllowanceRecord:
    """已確認折讓單；items 存在時以明細金額為準"""
    in_or_out: InOrOut
    original_invoice_serial_code: Optional[str] = None
    allowance_type: Optional[AllowanceType] = None
    amount: int = 0
    tax_amount: int = 0
    date: Optional[str] = None
    seller_tax_id: Optional[str] = None
    buyer_tax_id: Optional[str] = None
    tax_type: Optional[TaxType] = None
    deduction_code: Optional[DeductionCode] = None
    summary: str = ''
    items: Tuple[AllowanceItem, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'items', tuple(self.items))
        object.__setattr__(self, 'extra', _frozen_extra(self.extra))

    def effective_items(self) -> Tuple[AllowanceItem, ...]:
        if self.items:
            return self.items
        return (AllowanceItem(amount=self.amount, tax_amount=self.tax_amount),)

    @property
    def total_amount(self) -> int:
        return sum(item.amount for item in self.effective_items())

    @property
    def total_tax_amount(self) -> int:
        return sum(item.tax_amount for item in self.effective_items())


@dataclass(frozen=True)
class InvoiceRangeRecord:
    """客戶申報的發票字軌區間"""
    invoice_type: InvoiceType
    start_number: str
    end_number: str


@dataclass(frozen=True)
class ClientInfo:
    id: int
    name: str
    tax_id: str
    tax_payer_id: str


@dataclass(frozen=True)
class TetUConfig:
    """TET_U 申報人資料（外部提供，不由發票推導）"""
    tax_payer_id: str
    consolidated_declaration_code: str = '0'   # 0=單一, 1=總機構, 2=分別
    declaration_code: str = ''
    file_number: str = ''
    mid_year_closure_tax_payable: int = 0
    previous_period_carry_forward_tax: int = 0
    mid_year_closure_tax_refundable: int = 0
    declaration_type: str = '1'                # 1=按期, 2=按月
    county_city: str = ''
    declaration_method: str = '1'              # 1=自行, 2=委託
    declarer_id: str = ''
    declarer_name: str = ''
    declarer_phone_area_code: str = ''
    declarer_phone: str = ''
    declarer_phone_extension: str = ''
    agent_registration_number: str = ''


@dataclass(frozen=True)
class LedgerRow:
    """TXT 申報檔的一筆邏輯資料（發票、折讓明細或空白未使用發票）"""
    format_code: str
    in_or_out: InOrOut
    date: Optional[str] = None
    buyer_tax_id: Optional[str] = None
    seller_tax_id: Optional[str] = None
    invoice_serial_code: Optional[str] = None
    tax_type: Optional[TaxType] = None
    total_sales: int = 0
    tax: int = 0
    deduction_code: Optional[DeductionCode] = None

    @property
    def is_aggregate_block(self) -> bool:
        """彙加資料且涵蓋多個號碼（買受人統編欄位存放區間迄號）"""
        return self.tax_type == TaxType.AGGREGATE and self.buyer_tax_id is not None

    @property
    def sort_key(self):
        return int(self.format_code), self.invoice_serial_code or ''
