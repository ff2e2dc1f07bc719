"""
TXT / TET_U 申報檔產生測試（含昂工科技 114 年 9-10 月完整資料）
"""

import pytest

from app.errors import ClientNotFoundError, PeriodMismatchError
from app.models import db, TaxFilingPeriod
from app.records import TaxType, InOrOut, DeductionCode, LedgerRow, AllowanceRecord, AllowanceItem, AllowanceType
from app.services.mapping_service import map_tet_u_config
from app.services.report_service import (
    TXT_ROW_LENGTH,
    TET_U_FIELD_COUNT,
    COUNTY_CITY_CODES,
    allowance_to_rows,
    generate_txt_row,
    generate_txt_report,
    generate_tet_u_report,
    generate_report_summary,
    get_declaration_code,
    get_county_city_code,
    order_ledger_rows,
)
from app.utils.field_format import legacy_byte_length
from unit_test.conftest import (
    CLIENT_TAX_ID, CLIENT_TAX_PAYER_ID, PERIOD_YYYMM, add_invoice, add_allowance, output_invoice_data,
)


def row(format_code, serial, in_or_out=InOrOut.OUTPUT, **kwargs):
    return LedgerRow(format_code=format_code, in_or_out=in_or_out, invoice_serial_code=serial, **kwargs)


class TestTxtRow:
    def test_layout(self):
        line = generate_txt_row(
            row('31', 'RT33662452', date='2025/09/19', buyer_tax_id='93556691',
                seller_tax_id='60707504', tax_type=TaxType.TAXABLE, total_sales=6000, tax=300),
            3, '351406082')
        assert len(line) == TXT_ROW_LENGTH
        assert line[0:2] == '31'
        assert line[2:11] == '351406082'
        assert line[11:18] == '0000003'
        assert line[18:23] == '11409'
        assert line[23:31] == '93556691'
        assert line[31:39] == '60707504'
        assert line[39:49] == 'RT33662452'
        assert line[49:61] == '000000006000'
        assert line[61] == '1'
        assert line[62:72] == '0000000300'
        assert line[72] == ' '
        assert line[73:81] == ' ' * 8

    def test_void_zeroes_amounts_and_buyer(self):
        line = generate_txt_row(
            row('31', 'RT33662451', date='2025/09/19', buyer_tax_id='93556691',
                seller_tax_id='60707504', tax_type=TaxType.VOID, total_sales=6000, tax=300),
            1, '351406082')
        assert line[23:31] == ' ' * 8
        assert line[49:61] == '0' * 12
        assert line[61] == 'F'
        assert line[62:72] == '0' * 10

    def test_input_deduction_code_defaults_to_one(self):
        line = generate_txt_row(row('21', 'RT26980200', InOrOut.INPUT, tax_type=TaxType.TAXABLE), 1, '351406082')
        assert line[72] == '1'
        line = generate_txt_row(row('23', 'RT26980200', InOrOut.INPUT, tax_type=TaxType.TAXABLE,
                                    deduction_code=DeductionCode.FIXED_ASSETS), 1, '351406082')
        assert line[72] == '2'

    def test_aggregate_markers(self):
        block = generate_txt_row(row('31', 'RT33662457', tax_type=TaxType.AGGREGATE,
                                     buyer_tax_id='33662499'), 1, '351406082')
        single = generate_txt_row(row('31', 'RT33662499', tax_type=TaxType.AGGREGATE), 1, '351406082')
        assert block[61] == 'D' and block[79] == 'A'
        assert single[61] == 'D' and single[79] == ' '

    def test_missing_date_is_blank(self):
        line = generate_txt_row(row('31', 'RT33662452'), 1, '351406082')
        assert line[18:23] == ' ' * 5
        assert line[61] == '1'


class TestOrdering:
    def test_groups_by_format_code_then_fillers(self):
        input_rows = [row('21', 'RT26980200', InOrOut.INPUT), row('25', 'TJ78038974', InOrOut.INPUT)]
        output_rows = {
            '35': [row('35', 'AB00000002'), row('35', 'AB00000001')],
            '31': [row('31', 'RT33662452'), row('31', 'RT33662450')],
        }
        unused_rows = {
            '31': [row('31', 'RT33662457', tax_type=TaxType.AGGREGATE)],
            '32': [row('32', 'RV25776650', tax_type=TaxType.AGGREGATE)],
        }
        ordered = order_ledger_rows(input_rows, output_rows, unused_rows)
        assert [r.invoice_serial_code for r in ordered] == [
            'RT26980200', 'TJ78038974',
            'RT33662450', 'RT33662452', 'RT33662457',
            'RV25776650',
            'AB00000001', 'AB00000002',
        ]


class TestAllowanceRows:
    def test_one_row_per_item(self):
        allowance = AllowanceRecord(
            in_or_out=InOrOut.INPUT,
            original_invoice_serial_code='RT26980200',
            allowance_type=AllowanceType.DUPLICATE,
            deduction_code=DeductionCode.FIXED_ASSETS,
            items=[AllowanceItem(100, 5), AllowanceItem(40, 2)],
        )
        rows = allowance_to_rows(allowance)
        assert [r.format_code for r in rows] == ['24', '24']
        assert [(r.total_sales, r.tax) for r in rows] == [(100, 5), (40, 2)]
        assert all(r.tax_type == TaxType.TAXABLE for r in rows)
        assert all(r.invoice_serial_code == 'RT26980200' for r in rows)

    def test_default_allowance_type_is_electronic(self):
        rows = allowance_to_rows(AllowanceRecord(in_or_out=InOrOut.OUTPUT, amount=10, tax_amount=1))
        assert [r.format_code for r in rows] == ['33']


class TestTxtReport:
    def test_fixture_rows(self, seeded_client):
        lines = generate_txt_report(seeded_client.id, PERIOD_YYYMM).split('\n')

        assert len(lines) == 11
        assert all(len(line) == TXT_ROW_LENGTH for line in lines)
        assert [line[:2] for line in lines] == ['21', '25'] + ['31'] * 8 + ['32']
        assert [line[11:18] for line in lines] == [f'{n:07d}' for n in range(1, 12)]
        assert all(line[2:11] == CLIENT_TAX_PAYER_ID for line in lines)

    def test_output_rows_sorted_with_filler_last(self, seeded_client):
        lines = generate_txt_report(seeded_client.id, PERIOD_YYYMM).split('\n')
        serials = [line[39:49] for line in lines]
        assert serials[2:10] == [f'RT336624{n}' for n in range(50, 58)]

        filler = lines[9]
        assert filler[61] == 'D'
        assert filler[79] == 'A'
        assert filler[23:31] == '33662499'
        assert filler[31:39] == CLIENT_TAX_ID
        assert filler[18:23] == '11409'

        duplicate_filler = lines[10]
        assert duplicate_filler[39:49] == 'RV25776650'
        assert duplicate_filler[23:31] == '25776699'

    def test_void_row_appears_once(self, seeded_client):
        lines = generate_txt_report(seeded_client.id, PERIOD_YYYMM).split('\n')
        void_lines = [line for line in lines if line[61] == 'F']
        assert len(void_lines) == 1
        assert void_lines[0][39:49] == 'RT33662451'
        assert void_lines[0][49:61] == '000000000000'

    def test_input_rows_carry_deduction_code(self, seeded_client):
        lines = generate_txt_report(seeded_client.id, PERIOD_YYYMM).split('\n')
        assert lines[0][39:49] == 'RT26980200'
        assert lines[0][72] == '1'
        assert lines[1][39:49] == 'TJ78038974'
        assert lines[9][72] == ' '

    def test_allowance_rows_are_included(self, seeded_client):
        period = TaxFilingPeriod.query.filter_by(client_id=seeded_client.id, year_month=PERIOD_YYYMM).first()
        add_allowance(seeded_client.id, period.id, 'out', 'RT33662453', {
            'allowanceType': '三聯式折讓',
            'date': '2025/10/20',
            'sellerTaxId': CLIENT_TAX_ID,
            'buyerTaxId': '82530323',
            'amount': 2000,
            'taxAmount': 100,
        })
        db.session.commit()

        lines = generate_txt_report(seeded_client.id, PERIOD_YYYMM).split('\n')
        assert len(lines) == 12
        assert lines[-1][:2] == '33'
        assert lines[-1][39:49] == 'RT33662453'
        assert lines[-1][49:61] == '000000002000'

    def test_no_period_and_no_ranges_is_empty(self, empty_client):
        assert generate_txt_report(empty_client.id, PERIOD_YYYMM) == ''

    def test_missing_client(self, app):
        with pytest.raises(ClientNotFoundError):
            generate_txt_report(999, PERIOD_YYYMM)

    def test_invoice_outside_period(self, seeded_client):
        period = TaxFilingPeriod.query.filter_by(client_id=seeded_client.id, year_month=PERIOD_YYYMM).first()
        add_invoice(seeded_client.id, period.id,
                    output_invoice_data('RT33662457', '2025/11/02', 100, 5, '82530323', '應稅'))
        db.session.commit()

        with pytest.raises(PeriodMismatchError):
            generate_txt_report(seeded_client.id, PERIOD_YYYMM)


class TestTetU:
    @pytest.fixture
    def fields(self, seeded_client, tet_u_config_data):
        content = generate_tet_u_report(seeded_client.id, PERIOD_YYYMM, map_tet_u_config(tet_u_config_data))
        return content.split('|')

    def field(self, fields, number):
        return fields[number - 1]

    def test_field_count(self, fields):
        assert len(fields) == TET_U_FIELD_COUNT

    def test_header(self, fields):
        assert self.field(fields, 1) == '1'
        assert self.field(fields, 2) == '00000000'
        assert self.field(fields, 3) == CLIENT_TAX_ID
        assert self.field(fields, 4) == '11410'
        assert self.field(fields, 5) == '1'
        assert self.field(fields, 6) == CLIENT_TAX_PAYER_ID
        assert self.field(fields, 7) == '0'
        assert self.field(fields, 8) == '0000000006'

    def test_output_totals(self, fields):
        assert self.field(fields, 9) == '00000014800{'
        assert self.field(fields, 14) == '00000014800{'
        assert self.field(fields, 15) == '000000740{'
        assert self.field(fields, 20) == '000000740{'
        assert self.field(fields, 47) == '00000014800{'

    def test_input_totals(self, fields):
        assert self.field(fields, 50) == '00000000010G'
        assert self.field(fields, 52) == '00000000009E'
        assert self.field(fields, 58) == '00000000020B'
        assert self.field(fields, 68) == '000000001{'
        assert self.field(fields, 70) == '00000000020B'

    def test_tax_cascade(self, fields):
        assert self.field(fields, 82) == '000000740{'
        assert self.field(fields, 86) == '000000000{'
        assert self.field(fields, 87) == '000000001{'
        assert self.field(fields, 90) == '000000001{'
        assert self.field(fields, 91) == '000000739{'
        assert self.field(fields, 92) == '000000000{'
        assert self.field(fields, 95) == '000000000{'

    def test_declarant(self, fields):
        assert self.field(fields, 96) == '1'
        assert self.field(fields, 97) == 'F'
        assert self.field(fields, 98) == '2'
        assert self.field(fields, 99) == ' ' * 10
        assert self.field(fields, 100) == '黃勝平'
        assert self.field(fields, 101) == '04  '
        assert self.field(fields, 102) == '23758628   '
        assert self.field(fields, 103) == ' ' * 5
        assert self.field(fields, 104).startswith('104台財稅登字第4656號')
        assert legacy_byte_length(self.field(fields, 104)) == 50

    def test_unused_sections_are_zero(self, fields):
        for number in list(range(26, 47)) + list(range(105, 113)):
            assert set(self.field(fields, number)) == {'0', '{'}
        assert self.field(fields, 72) == '000'

    def test_separate_declaration_zeroes_cascade(self, seeded_client, tet_u_config_data):
        tet_u_config_data['consolidatedDeclarationCode'] = '2'
        tet_u_config_data['declarationCode'] = ''
        fields = generate_tet_u_report(seeded_client.id, PERIOD_YYYMM,
                                       map_tet_u_config(tet_u_config_data)).split('|')
        assert fields[4] == '1'
        assert all(f == '000000000{' for f in fields[81:95])

    def test_carry_forward_credit(self, seeded_client, tet_u_config_data):
        tet_u_config_data['previousPeriodCarryForwardTax'] = 10000
        fields = generate_tet_u_report(seeded_client.id, PERIOD_YYYMM,
                                       map_tet_u_config(tet_u_config_data)).split('|')
        # 90 = 10 + 10000，留抵 = 10010 - 7400
        assert fields[89] == '000001001{'
        assert fields[90] == '000000000{'
        assert fields[91] == '000000261{'
        assert fields[92] == '000000000{'
        assert fields[93] == '000000000{'
        assert fields[94] == '000000261{'

    def test_missing_client(self, app, tet_u_config_data):
        with pytest.raises(ClientNotFoundError):
            generate_tet_u_report(999, PERIOD_YYYMM, map_tet_u_config(tet_u_config_data))

    def test_no_period_still_builds_all_fields(self, empty_client, tet_u_config_data):
        fields = generate_tet_u_report(empty_client.id, PERIOD_YYYMM,
                                       map_tet_u_config(tet_u_config_data)).split('|')
        assert len(fields) == TET_U_FIELD_COUNT
        assert fields[7] == '0000000000'


class TestTetUHelpers:
    def test_declaration_code(self, tet_u_config_data):
        tet_u_config_data['declarationCode'] = ''
        assert get_declaration_code(map_tet_u_config(tet_u_config_data)) == '1'
        tet_u_config_data['consolidatedDeclarationCode'] = '1'
        assert get_declaration_code(map_tet_u_config(tet_u_config_data)) == '5'
        tet_u_config_data['declarationCode'] = '3'
        assert get_declaration_code(map_tet_u_config(tet_u_config_data)) == '3'

    def test_county_city_codes(self):
        assert get_county_city_code('臺北市') == 'A'
        assert get_county_city_code('連江縣') == 'Z'
        assert get_county_city_code('不存在') == 'A'
        with pytest.raises(TypeError):
            COUNTY_CITY_CODES['臺北市'] = 'X'


def test_report_summary(seeded_client):
    snapshot, totals = generate_report_summary(seeded_client.id, '11410')
    assert snapshot.period.to_yyymm() == PERIOD_YYYMM
    assert snapshot.has_period
    assert len(snapshot.invoices) == 9
    assert totals.output.total_sales == 148000
    assert totals.input.total_purchases_and_expenses == 202


class TestMonthlyPeriod:
    """按月申報：期別只涵蓋單一月份"""

    @pytest.fixture
    def monthly_period(self, empty_client):
        period = TaxFilingPeriod(client_id=empty_client.id, year_month='11410', month_span=1)
        db.session.add(period)
        db.session.flush()
        add_invoice(empty_client.id, period.id,
                    output_invoice_data('RT33662455', '2025/10/16', 6000, 300, '93556691', '應稅'))
        db.session.commit()
        return period

    def test_tet_u_covers_single_month(self, empty_client, monthly_period, tet_u_config_data):
        content = generate_tet_u_report(empty_client.id, '11410', map_tet_u_config(tet_u_config_data))
        fields = content.split('|')
        assert fields[3] == '11410'
        assert fields[13] == '00000000600{'

    def test_summary_resolves_monthly_period(self, empty_client, monthly_period):
        snapshot, totals = generate_report_summary(empty_client.id, '11410')
        assert snapshot.period.month_span == 1
        assert snapshot.period.to_yyymm() == '11410'
        assert snapshot.period_id == monthly_period.id
        assert totals.output.total_sales == 6000

    def test_invoice_from_paired_month_is_rejected(self, empty_client, monthly_period):
        add_invoice(empty_client.id, monthly_period.id,
                    output_invoice_data('RT33662452', '2025/09/19', 6000, 300, '93556691', '應稅'))
        db.session.commit()

        with pytest.raises(PeriodMismatchError):
            generate_txt_report(empty_client.id, '11410')
