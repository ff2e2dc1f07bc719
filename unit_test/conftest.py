"""
測試共用 fixture：Flask app（TestingConfig / SQLite in-memory）與昂工科技 114 年 9-10 月的申報資料
"""

import pytest

from app import create_app
from app.models import db, Client, TaxFilingPeriod, Invoice, Allowance, InvoiceRange

CLIENT_TAX_ID = '60707504'
CLIENT_TAX_PAYER_ID = '351406082'
PERIOD_YYYMM = '11409'

OUTPUT_INVOICES = [
    # (發票號碼, 日期, 銷售額, 稅額, 買受人統編, 課稅別)
    ('RT33662452', '2025/09/19', 6000, 300, '93556691', '應稅'),
    ('RT33662454', '2025/09/30', 5000, 250, '82530323', '應稅'),
    ('RT33662450', '2025/09/10', 6000, 300, '85001521', '應稅'),
    ('RT33662455', '2025/10/16', 6000, 300, '93556691', '應稅'),
    ('RT33662453', '2025/09/22', 120000, 6000, '82530323', '應稅'),
    ('RT33662456', '2025/10/03', 5000, 250, '82530323', '應稅'),
    ('RT33662451', '2025/09/19', 6000, 300, '93556691', '作廢'),
]

INPUT_INVOICES = [
    # (發票號碼, 發票類型, 賣方統編, 日期, 銷售額, 稅額, 摘要)
    ('TJ78038974', '電子發票', '88232292', '2025/09/12', 95, 5, '停車費'),
    ('RT26980200', '手開三聯式', '16160426', '2025/09/03', 107, 5, '購買文具用品。'),
]

TET_U_CONFIG = {
    'fileNumber': '00000000',
    'taxPayerId': '351406082',
    'consolidatedDeclarationCode': '0',
    'declarationCode': '1',
    'midYearClosureTaxPayable': 0,
    'previousPeriodCarryForwardTax': 0,
    'midYearClosureTaxRefundable': 0,
    'declarationType': '1',
    'countyCity': '新北市',
    'declarationMethod': '2',
    'declarerId': ' ' * 10,
    'declarerName': '黃勝平',
    'declarerPhoneAreaCode': '04  ',
    'declarerPhone': '23758628   ',
    'declarerPhoneExtension': ' ' * 5,
    'agentRegistrationNumber': '104台財稅登字第4656號' + ' ' * 28,
}


def output_invoice_data(serial, date, sales, tax, buyer, tax_type, invoice_type='手開三聯式'):
    return {
        'invoiceSerialCode': serial,
        'date': date,
        'sellerTaxId': CLIENT_TAX_ID,
        'buyerTaxId': buyer,
        'totalSales': sales,
        'tax': tax,
        'totalAmount': sales + tax,
        'taxType': tax_type,
        'invoiceType': invoice_type,
        'inOrOut': '銷項',
        'deductible': False,
        'summary': '',
    }


def input_invoice_data(serial, invoice_type, seller, date, sales, tax, summary, deductible=True):
    return {
        'invoiceSerialCode': serial,
        'date': date,
        'sellerTaxId': seller,
        'buyerTaxId': CLIENT_TAX_ID,
        'totalSales': sales,
        'tax': tax,
        'totalAmount': sales + tax,
        'taxType': '應稅',
        'invoiceType': invoice_type,
        'inOrOut': '進項',
        'deductible': deductible,
        'summary': summary,
        'confidence': {'invoiceSerialCode': 0.98},
    }


def add_invoice(client_id, period_id, data, status='confirmed'):
    invoice = Invoice(
        client_id=client_id,
        tax_filing_period_id=period_id,
        in_or_out='out' if data['inOrOut'] == '銷項' else 'in',
        status=status,
        invoice_serial_code=data['invoiceSerialCode'],
        extracted_data=data,
    )
    db.session.add(invoice)
    return invoice


def add_allowance(client_id, period_id, in_or_out, original_serial, data, status='confirmed'):
    allowance = Allowance(
        client_id=client_id,
        tax_filing_period_id=period_id,
        in_or_out=in_or_out,
        status=status,
        original_invoice_serial_code=original_serial,
        extracted_data=data,
    )
    db.session.add(allowance)
    return allowance


@pytest.fixture
def app():
    """建立測試用 Flask app，每個測試使用獨立的記憶體資料庫"""
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def empty_client(app):
    """只有客戶資料，沒有期別"""
    client = Client(name='昂工科技有限公司', tax_id=CLIENT_TAX_ID, tax_payer_id=CLIENT_TAX_PAYER_ID)
    db.session.add(client)
    db.session.commit()
    return client


@pytest.fixture
def seeded_client(empty_client):
    """昂工科技 114 年 9-10 月：7 張銷項（含 1 張作廢）、2 張進項、2 組字軌"""
    period = TaxFilingPeriod(client_id=empty_client.id, year_month=PERIOD_YYYMM, month_span=2)
    db.session.add(period)
    db.session.flush()

    for serial, date, sales, tax, buyer, tax_type in OUTPUT_INVOICES:
        add_invoice(empty_client.id, period.id, output_invoice_data(serial, date, sales, tax, buyer, tax_type))

    for serial, invoice_type, seller, date, sales, tax, summary in INPUT_INVOICES:
        add_invoice(empty_client.id, period.id,
                    input_invoice_data(serial, invoice_type, seller, date, sales, tax, summary))

    # 未確認的發票不列入
    add_invoice(empty_client.id, period.id,
                output_invoice_data('RT33662499', '2025/09/30', 99999, 5000, '12345678', '應稅'),
                status='processed')

    db.session.add(InvoiceRange(client_id=empty_client.id, year_month=PERIOD_YYYMM,
                                invoice_type='手開二聯式',
                                start_number='RV25776650', end_number='RV25776699'))
    db.session.add(InvoiceRange(client_id=empty_client.id, year_month=PERIOD_YYYMM,
                                invoice_type='手開三聯式',
                                start_number='RT33662450', end_number='RT33662499'))
    db.session.commit()
    return empty_client


@pytest.fixture
def tet_u_config_data():
    return dict(TET_U_CONFIG)
