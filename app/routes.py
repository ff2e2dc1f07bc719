# app/routes.py
# 路由定義

from io import BytesIO
from flask import Blueprint, request, jsonify, send_file, current_app

from app.errors import ClientNotFoundError, ReportDataError
from app.services.excel_export_service import create_summary_excel
from app.services.mapping_service import map_tet_u_config, count_invoice_labels
from app.services.period_service import get_client
from app.services.report_service import (
    generate_txt_report,
    generate_tet_u_report,
    generate_report_summary,
)


# ==================== Blueprints ====================

api_bp = Blueprint('api', __name__)


# ==================== 輔助函數 ====================

def report_error_response(action: str, error: Exception):
    """將申報檔產生過程的例外轉為 JSON 錯誤回應"""
    if isinstance(error, ClientNotFoundError):
        return jsonify({"error": "客戶不存在", "detail": str(error)}), 404
    if isinstance(error, ReportDataError):
        current_app.logger.warning(f"{action}失敗（資料不一致）: {error}")
        return jsonify({"error": f"{action}失敗", "detail": str(error)}), 422
    if isinstance(error, ValueError):
        return jsonify({"error": "參數錯誤", "detail": str(error)}), 400

    current_app.logger.error(f"{action}失敗: {str(error)}")
    return jsonify({"error": f"{action}失敗", "detail": str(error)}), 500


def send_report_file(content: str, filename: str):
    encoding = current_app.config.get('REPORT_FILE_ENCODING', 'utf-8')
    return send_file(
        BytesIO(content.encode(encoding, errors='replace')),
        mimetype=f'text/plain; charset={encoding}',
        as_attachment=True,
        download_name=filename
    )


# ==================== API ====================

@api_bp.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"}), 200


@api_bp.route('/clients/<int:client_id>/periods/<yyymm>/txt', methods=['GET'])
def download_txt_report(client_id, yyymm):
    """下載 TXT 申報檔"""
    try:
        client = get_client(client_id)
        content = generate_txt_report(client_id, yyymm)
        return send_report_file(content, f"{client.tax_id}.TXT")
    except Exception as e:
        return report_error_response("產生 TXT 申報檔", e)


@api_bp.route('/clients/<int:client_id>/periods/<yyymm>/tet_u', methods=['POST'])
def download_tet_u_report(client_id, yyymm):
    """下載 TET_U 申報檔，request body 為申報人資料"""
    try:
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "參數錯誤", "detail": "缺少 TET_U 設定"}), 400

        config = map_tet_u_config(data)
        client = get_client(client_id)
        content = generate_tet_u_report(
            client_id, yyymm, config,
            legacy_encoding=current_app.config.get('REPORT_LEGACY_ENCODING', 'cp950')
        )
        return send_report_file(content, f"{client.tax_id}.TET_U")
    except Exception as e:
        return report_error_response("產生 TET_U 申報檔", e)


@api_bp.route('/clients/<int:client_id>/periods/<yyymm>/summary', methods=['GET'])
def get_report_summary(client_id, yyymm):
    """申報金額彙總"""
    try:
        snapshot, totals = generate_report_summary(client_id, yyymm)
        return jsonify({
            "client": {"id": snapshot.client.id, "name": snapshot.client.name, "tax_id": snapshot.client.tax_id},
            "period": snapshot.period.to_yyymm(),
            "period_label": snapshot.period.format(),
            "has_period": snapshot.has_period,
            "totals": totals.to_dict(),
            "invoice_labels": count_invoice_labels(snapshot.invoices),
        }), 200
    except Exception as e:
        return report_error_response("申報金額彙總", e)


@api_bp.route('/clients/<int:client_id>/periods/<yyymm>/summary.xlsx', methods=['GET'])
def download_report_summary_excel(client_id, yyymm):
    """下載申報金額彙總 Excel"""
    try:
        snapshot, totals = generate_report_summary(client_id, yyymm)
        excel_file = create_summary_excel(snapshot.client, snapshot.period, totals)
        return send_file(
            excel_file,
            mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            as_attachment=True,
            download_name=f"{snapshot.client.tax_id}_{snapshot.period.to_yyymm()}.xlsx"
        )
    except Exception as e:
        return report_error_response("匯出彙總 Excel", e)
